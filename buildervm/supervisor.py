"""Process-supervisor contract for the long-running ``vm serve`` command.

On macOS the supervisor is launchd: ``render_launchd_plist`` produces the
daemon definition (restart always, run as the host principal, started in the
working directory). ``supervise`` is an in-process equivalent for running the
controller by hand.
"""

from __future__ import annotations

import plistlib
import time
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

from .config import BuilderConfig

log = logger


@dataclass(frozen=True)
class SupervisorSpec:
    label: str
    command: tuple[str, ...]
    working_dir: str
    run_as: str
    keep_alive: bool = True
    environment: dict[str, str] = field(default_factory=dict)
    stdout_path: str = ''
    stderr_path: str = ''


def supervisor_spec(
    cfg: BuilderConfig,
    *,
    executable: str = 'buildervm',
    config_path: str = '',
    environment: dict[str, str] | None = None,
) -> SupervisorSpec:
    cfg = cfg.expanded_paths()
    daemon = f'{cfg.vm.name}d'
    command = [executable, 'vm', 'serve']
    if config_path:
        command.extend(['--config', config_path])
    return SupervisorSpec(
        label=daemon,
        command=tuple(command),
        working_dir=cfg.principal.working_dir,
        run_as=cfg.principal.user,
        environment=dict(environment or {}),
        stdout_path=f'/tmp/{daemon}.out.log' if cfg.vm.debug else '',
        stderr_path=f'/tmp/{daemon}.err.log' if cfg.vm.debug else '',
    )


def render_launchd_plist(spec: SupervisorSpec) -> str:
    body: dict[str, object] = {
        'Label': spec.label,
        'ProgramArguments': list(spec.command),
        'KeepAlive': spec.keep_alive,
        'RunAtLoad': True,
        'UserName': spec.run_as,
        'WorkingDirectory': spec.working_dir,
    }
    if spec.environment:
        body['EnvironmentVariables'] = dict(spec.environment)
    if spec.stdout_path:
        body['StandardOutPath'] = spec.stdout_path
    if spec.stderr_path:
        body['StandardErrorPath'] = spec.stderr_path
    return plistlib.dumps(body).decode('utf-8')


def supervise(
    run_once: Callable[[], int],
    *,
    max_restarts: int | None = None,
    delay_s: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Call ``run_once`` forever (or ``max_restarts`` more times).

    Exits of the VM, with any code, are ordinary terminations and trigger a
    restart. Exceptions (a failed bootstrap, a listing error) are logged and
    retried the same way, since the next attempt re-derives all state.
    """
    restarts = 0
    code = 0
    while True:
        try:
            code = run_once()
            log.info('Supervised run ended with code {}', code)
        except Exception as ex:
            code = 1
            log.error('Supervised run failed: {}', ex)
        if max_restarts is not None and restarts >= max_restarts:
            return code
        restarts += 1
        log.info('Restarting in {}s (restart #{})', delay_s, restarts)
        sleep(delay_s)
