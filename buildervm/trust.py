"""Host trust store and the ssh client stanza for the builder alias.

The trust entry for an alias is written during bootstrap, before the VM is
even defined, so the very first connection already runs with strict host key
checking against a known key.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import BuilderConfig
from .errors import UntrustedHostError
from .layout import HostLayout
from .runtime import ssh_base_args
from .util import atomic_write_text

log = logger


def known_hosts_line(alias: str, public_key: str) -> str:
    return f'{alias} {public_key.strip()}'


def _entries(path: Path) -> list[str]:
    if not path.exists():
        return []
    return [ln for ln in path.read_text(encoding='utf-8').splitlines() if ln.strip()]


def read_trust_entry(path: Path, alias: str) -> str | None:
    """Return the public key recorded for ``alias``, if any."""
    for line in _entries(path):
        parts = line.split(None, 1)
        if len(parts) == 2 and parts[0] == alias:
            return parts[1].strip()
    return None


def write_trust_entry(path: Path, alias: str, public_key: str) -> Path:
    """Record ``alias`` -> ``public_key``, replacing any stale entry for it."""
    existing = _entries(path)
    kept = [ln for ln in existing if ln.split(None, 1)[0] != alias]
    if len(kept) != len(existing):
        log.warning('Replacing stale trust store entry for {}', alias)
    kept.append(known_hosts_line(alias, public_key))
    atomic_write_text(path, '\n'.join(kept) + '\n', mode=0o644)
    log.info('Trust store entry written for {} in {}', alias, path)
    return path


def client_config_path(cfg: BuilderConfig) -> Path:
    cfg = cfg.expanded_paths()
    return Path(cfg.ssh.client_config_dir) / f'100-{cfg.ssh.alias}.conf'


def render_client_stanza(
    cfg: BuilderConfig, layout: HostLayout | None = None
) -> str:
    cfg = cfg.expanded_paths()
    layout = layout or HostLayout.from_config(cfg)
    return (
        f'Host "{cfg.ssh.alias}"\n'
        f'  GlobalKnownHostsFile "{layout.known_hosts}"\n'
        '  Hostname localhost\n'
        f'  HostKeyAlias "{cfg.host_key_alias}"\n'
        f'  Port "{cfg.vm.ssh_port}"\n'
        '  StrictHostKeyChecking yes\n'
        f'  User "{cfg.guest.user}"\n'
        f'  IdentityFile "{layout.user_private_key}"\n'
    )


def write_client_config(cfg: BuilderConfig, path: Path | None = None) -> Path:
    path = path or client_config_path(cfg)
    atomic_write_text(path, render_client_stanza(cfg), mode=0o644)
    log.info('Wrote ssh client config {}', path)
    return path


def require_trusted(cfg: BuilderConfig, layout: HostLayout | None = None) -> str:
    cfg = cfg.expanded_paths()
    layout = layout or HostLayout.from_config(cfg)
    key = read_trust_entry(layout.known_hosts, cfg.host_key_alias)
    if key is None:
        raise UntrustedHostError(
            f'No trust store entry for {cfg.host_key_alias} in {layout.known_hosts}; '
            'refusing to connect to an unauthenticated host.'
        )
    return key


def ssh_probe_cmd(
    cfg: BuilderConfig,
    config_file: Path,
    *,
    remote: str = 'true',
    connect_timeout: int = 5,
) -> list[str]:
    """Build a connection attempt; only possible once the alias is trusted."""
    require_trusted(cfg)
    return [
        'ssh',
        *ssh_base_args(
            config_file, batch_mode=True, connect_timeout=connect_timeout
        ),
        cfg.expanded_paths().ssh.alias,
        remote,
    ]
