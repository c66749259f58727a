"""Typed configuration sections for the builder VM and their TOML persistence."""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path

import ubelt as ub

from .util import expand

SECTIONS = ('vm', 'guest', 'ssh', 'principal', 'builders')


@dataclass
class VMConfig:
    name: str = 'rosetta-builder'
    cpus: int = 8
    memory: str = '6GiB'
    image: str = ''
    ssh_port: int = 31122
    emulation: bool = True
    debug: bool = False

    @property
    def instance_name(self) -> str:
        return f'{self.name}-vm'


@dataclass
class GuestConfig:
    hostname: str = ''
    user: str = 'builder'
    ssh_dir: str = '/etc/ssh'
    keys_mount_dir: str = '/var/sshd-keys'
    unit_name: str = 'sshd-keys'
    sshd_service: str = 'sshd.service'


@dataclass
class SSHConfig:
    key_type: str = 'ed25519'
    alias: str = ''
    channel_dir_name: str = 'linux-sshd-keys'
    known_hosts_name: str = 'ssh_known_hosts'
    client_config_dir: str = '/etc/ssh/ssh_config.d'


@dataclass
class PrincipalConfig:
    user: str = '_rosettabuilder'
    group: str = 'rosettabuilder'
    uid: int = 349
    gid: int = 349
    working_dir: str = '/var/lib/rosetta-builder'


@dataclass
class BuildersConfig:
    protocol: str = 'ssh-ng'
    features: list[str] = field(
        default_factory=lambda: ['benchmark', 'big-parallel', 'kvm']
    )
    systems: list[str] = field(
        default_factory=lambda: ['aarch64-linux', 'x86_64-linux']
    )


@dataclass
class BuilderConfig:
    vm: VMConfig = field(default_factory=VMConfig)
    guest: GuestConfig = field(default_factory=GuestConfig)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    principal: PrincipalConfig = field(default_factory=PrincipalConfig)
    builders: BuildersConfig = field(default_factory=BuildersConfig)
    verbosity: int = 1

    def expanded_paths(self) -> 'BuilderConfig':
        self.principal.working_dir = expand(self.principal.working_dir)
        self.vm.image = expand(self.vm.image) if self.vm.image else ''
        # The guest hostname and ssh alias are user visible, so they follow
        # the VM name unless explicitly set.
        if not self.guest.hostname:
            self.guest.hostname = self.vm.name
        if not self.ssh.alias:
            self.ssh.alias = self.vm.name
        return self

    @property
    def host_key_alias(self) -> str:
        return f'{self.ssh.alias or self.vm.name}-key'


def default_config_path() -> Path:
    return Path(ub.Path.appdir('buildervm', type='config')) / 'config.toml'


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def dump_toml(cfg: BuilderConfig) -> str:
    d = asdict(cfg)
    lines: list[str] = []
    # Bare keys must precede the first table or TOML assigns them to it.
    if cfg.verbosity != 1:
        lines.append(f'verbosity = {cfg.verbosity}')
        lines.append('')
    for section, body in d.items():
        if isinstance(body, dict):
            lines.append(f'[{section}]')
            for k, v in body.items():
                if isinstance(v, bool):
                    lines.append(f'{k} = {"true" if v else "false"}')
                elif isinstance(v, int):
                    lines.append(f'{k} = {v}')
                elif isinstance(v, list):
                    parts = [f'"{_toml_escape(str(item))}"' for item in v]
                    lines.append(f'{k} = [{", ".join(parts)}]')
                else:
                    lines.append(f'{k} = "{_toml_escape(str(v))}"')
            lines.append('')
    return '\n'.join(lines).rstrip() + '\n'


def loads(text: str) -> BuilderConfig:
    raw = tomllib.loads(text)
    cfg = BuilderConfig()
    for section in SECTIONS:
        if section in raw and isinstance(raw[section], dict):
            obj = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(obj, k):
                    setattr(obj, k, v)
    if 'verbosity' in raw:
        cfg.verbosity = int(raw['verbosity'])
    return cfg


def load(path: Path) -> BuilderConfig:
    return loads(path.read_text(encoding='utf-8'))


def save(path: Path, cfg: BuilderConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_toml(cfg), encoding='utf-8')
