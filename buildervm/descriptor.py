"""Pure mapping from configuration to the VM descriptor and guest plan.

The hypervisor exposes the N-th entry of the descriptor's mount list to the
guest under the virtiofs tag ``mount<N>``. Mounts are therefore declared as
named bindings and the guest side resolves its tag by name through the same
descriptor, instead of both sides agreeing on a position by convention.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .config import BuilderConfig
from .layout import GuestLayout, HostLayout

KEYS_MOUNT = 'sshd-keys'
EMULATION_MOUNT_TAG = 'vz-rosetta'


@dataclass(frozen=True)
class MountBinding:
    name: str
    location: str


@dataclass(frozen=True)
class VMDescriptor:
    name: str
    cpus: int
    memory: str
    images: tuple[str, ...]
    mounts: tuple[MountBinding, ...]
    ssh_port: int
    emulation: bool = True

    def mount_tag(self, name: str) -> str:
        for idx, binding in enumerate(self.mounts):
            if binding.name == name:
                return f'mount{idx}'
        raise KeyError(f'No mount named {name!r} in descriptor {self.name!r}')

    def as_lima(self) -> dict:
        return {
            'containerd': {'user': False},
            'cpus': self.cpus,
            'images': [{'location': loc} for loc in self.images],
            'memory': self.memory,
            'mounts': [{'location': m.location} for m in self.mounts],
            'rosetta': {'enabled': self.emulation},
            'ssh': {'localPort': self.ssh_port},
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.as_lima(), sort_keys=False)


@dataclass(frozen=True)
class GuestPlan:
    """Guest-module settings handed to the guest image provider."""

    hostname: str
    user: str
    unit_name: str
    sshd_service: str
    keys_mount_tag: str
    layout: GuestLayout
    debug: bool = False
    extra_groups: tuple[str, ...] = field(default_factory=tuple)

    @property
    def sudo_enabled(self) -> bool:
        return self.debug

    @property
    def autologin_user(self) -> str | None:
        return self.user if self.debug else None

    @property
    def allow_power_actions(self) -> bool:
        return self.debug

    def as_dict(self) -> dict:
        return {
            'hostname': self.hostname,
            'user': {
                'name': self.user,
                'extra_groups': list(self.extra_groups),
                'autologin': self.autologin_user is not None,
            },
            'sudo': {
                'enable': self.sudo_enabled,
                'wheel_needs_password': not self.sudo_enabled,
            },
            'polkit_power_actions': self.allow_power_actions,
            'sshd': {
                'host_key': str(self.layout.host_private_key),
                'generate_host_keys': False,
                'password_authentication': False,
                'authorized_keys': str(self.layout.authorized_keys),
            },
            'key_installer': {
                'unit': self.unit_name,
                'before': self.sshd_service,
                'mount_tag': self.keys_mount_tag,
                'mount_dir': str(self.layout.mount_dir),
            },
            'emulation_mount_tag': EMULATION_MOUNT_TAG,
            'nix_settings': self.nix_settings(),
        }

    def nix_settings(self) -> dict[str, object]:
        """Guest nix.conf settings needed to serve remote builds."""
        return {
            'auto-optimise-store': True,
            'experimental-features': ['flakes', 'nix-command'],
            'min-free': '5G',
            'max-free': '7G',
            # ssh-ng builds are refused for users the daemon does not trust.
            'trusted-users': [self.user],
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.as_dict(), sort_keys=False)


def build_descriptor(
    cfg: BuilderConfig, layout: HostLayout | None = None
) -> VMDescriptor:
    cfg = cfg.expanded_paths()
    layout = layout or HostLayout.from_config(cfg)
    images = (cfg.vm.image,) if cfg.vm.image else ()
    return VMDescriptor(
        name=cfg.vm.instance_name,
        cpus=int(cfg.vm.cpus),
        memory=str(cfg.vm.memory),
        images=images,
        mounts=(MountBinding(KEYS_MOUNT, str(layout.channel_dir)),),
        ssh_port=int(cfg.vm.ssh_port),
        emulation=bool(cfg.vm.emulation),
    )


def build_guest_plan(
    cfg: BuilderConfig, descriptor: VMDescriptor | None = None
) -> GuestPlan:
    cfg = cfg.expanded_paths()
    descriptor = descriptor or build_descriptor(cfg)
    debug = bool(cfg.vm.debug)
    return GuestPlan(
        hostname=cfg.guest.hostname,
        user=cfg.guest.user,
        unit_name=cfg.guest.unit_name,
        sshd_service=cfg.guest.sshd_service,
        keys_mount_tag=descriptor.mount_tag(KEYS_MOUNT),
        layout=GuestLayout.from_config(cfg),
        debug=debug,
        extra_groups=('wheel',) if debug else (),
    )


def write_descriptor(descriptor: VMDescriptor, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(descriptor.to_yaml(), encoding='utf-8')
    return path
