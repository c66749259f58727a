"""Probe and rendering logic for builder VM status reporting."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

from .channel import TransferChannel
from .config import BuilderConfig
from .errors import BuilderVMError
from .host import check_commands
from .layout import HostLayout
from .principal import DirectoryService
from .state import CredentialStore
from .trust import (
    client_config_path,
    read_trust_entry,
    render_client_stanza,
    ssh_probe_cmd,
)
from .util import run_cmd
from .vm.hypervisor import LimaHypervisor


@dataclass(frozen=True)
class ProbeOutcome:
    ok: bool | None
    detail: str
    diag: str = ''


def status_line(ok: bool | None, label: str, detail: str = '') -> str:
    icon = '✅' if ok is True else ('➖' if ok is None else '❌')
    suffix = f' - {detail}' if detail else ''
    return f'{icon} {label}{suffix}'


def clip(text: str, *, max_lines: int = 60) -> str:
    lines = (text or '').strip().splitlines()
    if len(lines) <= max_lines:
        return '\n'.join(lines)
    keep: list[str] = list(lines[:max_lines])
    keep.append(f'... ({len(lines) - max_lines} more lines)')
    return '\n'.join(keep)


def probe_host_commands() -> ProbeOutcome:
    missing, missing_opt = check_commands()
    if missing:
        return ProbeOutcome(False, f'missing: {", ".join(missing)}')
    if missing_opt:
        return ProbeOutcome(True, f'optional missing: {", ".join(missing_opt)}')
    return ProbeOutcome(True, 'all required commands present')


def probe_principal(
    cfg: BuilderConfig, ds: DirectoryService | None = None
) -> ProbeOutcome:
    ds = ds or DirectoryService()
    p = cfg.principal
    uid = ds.read_user_uid(p.user)
    if uid is None:
        return ProbeOutcome(False, f'user {p.user} does not exist')
    if uid != p.uid:
        return ProbeOutcome(False, f'user {p.user} has uid {uid}, expected {p.uid}')
    return ProbeOutcome(True, f'{p.user} (uid={uid})')


def probe_vm_defined(
    cfg: BuilderConfig, hypervisor: LimaHypervisor | None = None
) -> ProbeOutcome:
    hypervisor = hypervisor or LimaHypervisor()
    name = cfg.vm.instance_name
    try:
        names = hypervisor.list_instances()
    except BuilderVMError as ex:
        return ProbeOutcome(False, 'instance listing failed', str(ex))
    if name in names:
        return ProbeOutcome(True, f'{name} defined')
    return ProbeOutcome(False, f'{name} not defined', '\n'.join(names))


def probe_credentials(store: CredentialStore) -> ProbeOutcome:
    layout = store.layout
    if not store.has(layout.user_private_key):
        return ProbeOutcome(False, f'user key missing: {layout.user_private_key}')
    return ProbeOutcome(True, str(layout.user_private_key))


def probe_trust(cfg: BuilderConfig, store: CredentialStore) -> ProbeOutcome:
    key = read_trust_entry(store.layout.known_hosts, cfg.host_key_alias)
    if key is None:
        return ProbeOutcome(
            False, f'no entry for {cfg.host_key_alias} in {store.layout.known_hosts}'
        )
    return ProbeOutcome(True, f'{cfg.host_key_alias} pinned', key)


def probe_channel(store: CredentialStore) -> ProbeOutcome:
    channel = TransferChannel(store)
    contents = channel.contents()
    if not channel.path.exists():
        return ProbeOutcome(None, 'channel directory absent')
    if not contents:
        return ProbeOutcome(True, 'channel empty')
    # Keys still staged: the guest has not booted yet, or it installed them
    # and the channel was never scrubbed.
    return ProbeOutcome(
        None, f'key material staged ({len(contents)} files)', '\n'.join(contents)
    )


def probe_ssh_ready(cfg: BuilderConfig, store: CredentialStore) -> ProbeOutcome:
    if read_trust_entry(store.layout.known_hosts, cfg.host_key_alias) is None:
        return ProbeOutcome(None, 'skipped (alias not trusted yet)')
    cfg_file = client_config_path(cfg)
    with tempfile.TemporaryDirectory() as td:
        if not cfg_file.exists():
            cfg_file = Path(td) / 'ssh_config'
            cfg_file.write_text(
                render_client_stanza(cfg, store.layout), encoding='utf-8'
            )
        res = run_cmd(
            ssh_probe_cmd(cfg, cfg_file, connect_timeout=3),
            check=False,
            capture=True,
        )
    if res.code == 0:
        return ProbeOutcome(True, f'{cfg.ssh.alias} reachable')
    return ProbeOutcome(
        False, f'{cfg.ssh.alias} unreachable (code={res.code})', res.stderr.strip()
    )


def render_status(
    cfg: BuilderConfig,
    *,
    detail: bool = False,
    probe_ssh: bool = True,
    hypervisor: LimaHypervisor | None = None,
    ds: DirectoryService | None = None,
) -> str:
    cfg = cfg.expanded_paths()
    store = CredentialStore(HostLayout.from_config(cfg))
    probes: list[tuple[str, ProbeOutcome]] = [
        ('Host commands', probe_host_commands()),
        ('Host principal', probe_principal(cfg, ds)),
        ('VM definition', probe_vm_defined(cfg, hypervisor)),
        ('User identity', probe_credentials(store)),
        ('Trust store', probe_trust(cfg, store)),
        ('Transfer channel', probe_channel(store)),
    ]
    if probe_ssh:
        probes.append(('SSH', probe_ssh_ready(cfg, store)))
    lines = [f'🧭 Builder VM status ({cfg.vm.instance_name})', '']
    for label, outcome in probes:
        lines.append(status_line(outcome.ok, label, outcome.detail))
        if detail and outcome.diag:
            lines.append('    ' + clip(outcome.diag).replace('\n', '\n    '))
    return '\n'.join(lines) + '\n'
