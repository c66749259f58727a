"""Bootstrap key generation: host and user identity keypairs, made once per VM."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .channel import TransferChannel
from .config import BuilderConfig
from .errors import KeyGenerationError
from .results import BootstrapResult
from .state import CredentialStore
from .trust import write_trust_entry
from .util import CmdError, run_cmd

log = logger


@dataclass(frozen=True)
class IdentityKeypair:
    algorithm: str
    private_path: Path
    comment: str = ''

    @property
    def public_path(self) -> Path:
        return Path(str(self.private_path) + '.pub')

    @property
    def private_material(self) -> str:
        return self.private_path.read_text(encoding='utf-8')

    @property
    def public_material(self) -> str:
        return self.public_path.read_text(encoding='utf-8').strip()


def generate_keypair(
    path: Path, *, key_type: str = 'ed25519', comment: str = ''
) -> IdentityKeypair:
    """Create a passphrase-less keypair at ``path``, replacing stale files."""
    pair = IdentityKeypair(key_type, Path(path), comment)
    # ssh-keygen prompts before overwriting; a leftover from an aborted
    # bootstrap belongs to no VM, so it is simply removed.
    for stale in (pair.private_path, pair.public_path):
        if stale.exists():
            log.debug('Removing stale key file {}', stale)
            stale.unlink()
    cmd = [
        'ssh-keygen',
        '-q',
        '-t',
        key_type,
        '-N',
        '',
        '-C',
        comment,
        '-f',
        str(pair.private_path),
    ]
    try:
        run_cmd(cmd, check=True, capture=True)
    except (CmdError, OSError) as ex:
        raise KeyGenerationError(
            f'ssh-keygen failed for {pair.private_path}: {ex}'
        ) from ex
    if not pair.private_path.exists() or not pair.public_path.exists():
        raise KeyGenerationError(
            f'ssh-keygen reported success but {pair.private_path} is missing'
        )
    log.info('Generated {} keypair {} ({})', key_type, pair.private_path, comment)
    return pair


def bootstrap(cfg: BuilderConfig, store: CredentialStore) -> BootstrapResult:
    """Generate both identities, stage the channel, and record host trust.

    The user private key never leaves the working directory. The host private
    key is moved into the transfer channel, so the only host-side copy is the
    one the guest will consume.
    """
    cfg = cfg.expanded_paths()
    layout = store.layout
    key_type = cfg.ssh.key_type
    log.info('Bootstrapping credentials for {}', cfg.vm.instance_name)

    user = generate_keypair(
        layout.user_private_key,
        key_type=key_type,
        comment=f'{cfg.principal.user}@darwin',
    )
    host = generate_keypair(
        layout.host_private_key,
        key_type=key_type,
        comment=f'root@{cfg.guest.hostname}',
    )

    channel = TransferChannel(store)
    channel.create()
    channel.populate(host.private_path, user.public_path)

    write_trust_entry(
        layout.known_hosts, cfg.host_key_alias, host.public_material
    )
    return BootstrapResult(
        user_key=user.private_path,
        host_public_key=host.public_path,
        channel_dir=channel.path,
        known_hosts=layout.known_hosts,
    )
