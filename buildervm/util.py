"""Subprocess, path, and file-writing helpers shared by host and guest code."""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from loguru import logger

log = logger


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.code == 0

    def lines(self) -> list[str]:
        """Non-blank stdout lines, stripped."""
        return [ln.strip() for ln in self.stdout.splitlines() if ln.strip()]


class CmdError(RuntimeError):
    def __init__(self, cmd: Sequence[str] | str, result: CmdResult):
        self.cmd = cmd
        self.result = result
        super().__init__(
            f'Command failed (code={result.code}): {shell_join(cmd)}\n'
            f'{result.stderr}'.strip()
        )

    def mentions(self, needle: str) -> bool:
        """Case-insensitive search of both output streams."""
        text = f'{self.result.stderr}\n{self.result.stdout}'.lower()
        return needle.lower() in text


def shell_join(cmd: Sequence[str] | str) -> str:
    if isinstance(cmd, str):
        return cmd
    return ' '.join(shlex.quote(c) for c in cmd)


def run_cmd(
    cmd: Sequence[str],
    *,
    sudo: bool = False,
    check: bool = True,
    capture: bool = True,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> CmdResult:
    """Run ``cmd`` and return its result.

    With ``sudo`` the command is prefixed with non-interactive ``sudo -n``
    unless already root. ``capture=False`` lets a long-running foreground
    child (``limactl start --foreground``) write straight to our terminal.
    """
    cmd = list(cmd)
    if sudo and os.geteuid() != 0:
        cmd = ['sudo', '-n', *cmd]
    where = f' (cwd={cwd})' if cwd else ''
    log.opt(depth=1).debug('RUN: {}{}', shell_join(cmd), where)
    p = subprocess.run(
        cmd,
        capture_output=capture,
        text=True,
        cwd=cwd,
        timeout=timeout,
    )
    res = CmdResult(p.returncode, p.stdout or '', p.stderr or '')
    if check and not res.ok:
        log.opt(depth=1).error(
            'Command failed code={} cmd={} stderr={}',
            res.code,
            shell_join(cmd),
            res.stderr.strip(),
        )
        raise CmdError(cmd, res)
    return res


def which(cmd: str) -> Optional[str]:
    return shutil.which(cmd)


def ensure_dir(path: Path, mode: Optional[int] = None) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    if mode is not None:
        os.chmod(path, mode)
    return path


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(path))


def atomic_write_text(path: Path, text: str, *, mode: int = 0o600) -> Path:
    """Write ``text`` through a sibling temp file and rename it into place.

    Readers see either the old file or the complete new one. The temp file is
    created with ``mode`` so secrets are never briefly world readable.
    """
    ensure_dir(path.parent)
    tmp = path.with_name(f'.{path.name}.tmp')
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return path


@contextmanager
def umask(mask: int) -> Iterator[None]:
    """Temporarily replace the process file-creation mask."""
    old = os.umask(mask)
    try:
        yield
    finally:
        os.umask(old)
