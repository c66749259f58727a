"""Fixed filesystem contracts on the host working directory and inside the guest."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .config import BuilderConfig


def host_private_key_name(key_type: str) -> str:
    return f'ssh_host_{key_type}_key'


def user_private_key_name(key_type: str) -> str:
    return f'ssh_user_{key_type}_key'


@dataclass(frozen=True)
class HostLayout:
    """Files owned by the host principal under its working directory."""

    root: Path
    key_type: str = 'ed25519'
    channel_dir_name: str = 'linux-sshd-keys'
    known_hosts_name: str = 'ssh_known_hosts'

    @classmethod
    def from_config(cls, cfg: BuilderConfig) -> 'HostLayout':
        cfg = cfg.expanded_paths()
        return cls(
            root=Path(cfg.principal.working_dir),
            key_type=cfg.ssh.key_type,
            channel_dir_name=cfg.ssh.channel_dir_name,
            known_hosts_name=cfg.ssh.known_hosts_name,
        )

    @property
    def user_private_key(self) -> Path:
        return self.root / user_private_key_name(self.key_type)

    @property
    def user_public_key(self) -> Path:
        return self.root / f'{user_private_key_name(self.key_type)}.pub'

    @property
    def host_private_key(self) -> Path:
        return self.root / host_private_key_name(self.key_type)

    @property
    def host_public_key(self) -> Path:
        return self.root / f'{host_private_key_name(self.key_type)}.pub'

    @property
    def known_hosts(self) -> Path:
        return self.root / self.known_hosts_name

    @property
    def channel_dir(self) -> Path:
        return self.root / self.channel_dir_name

    def descriptor_file(self, instance_name: str) -> Path:
        return self.root / f'{instance_name}.yaml'


@dataclass(frozen=True)
class GuestLayout:
    """Canonical guest paths the installer and sshd agree on."""

    user: str = 'builder'
    key_type: str = 'ed25519'
    ssh_dir: PurePosixPath = PurePosixPath('/etc/ssh')
    mount_dir: PurePosixPath = PurePosixPath('/var/sshd-keys')

    @classmethod
    def from_config(cls, cfg: BuilderConfig) -> 'GuestLayout':
        return cls(
            user=cfg.guest.user,
            key_type=cfg.ssh.key_type,
            ssh_dir=PurePosixPath(cfg.guest.ssh_dir),
            mount_dir=PurePosixPath(cfg.guest.keys_mount_dir),
        )

    @property
    def host_private_key(self) -> PurePosixPath:
        return self.ssh_dir / host_private_key_name(self.key_type)

    @property
    def authorized_keys(self) -> PurePosixPath:
        return self.ssh_dir / 'authorized_keys.d' / self.user

    @property
    def channel_host_private_key(self) -> PurePosixPath:
        return self.mount_dir / host_private_key_name(self.key_type)

    @property
    def channel_user_public_key(self) -> PurePosixPath:
        return self.mount_dir / f'{user_private_key_name(self.key_type)}.pub'
