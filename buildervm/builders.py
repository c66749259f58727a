"""Distributed-build registration record for the builder alias."""

from __future__ import annotations

from dataclasses import dataclass

from .config import BuilderConfig


@dataclass(frozen=True)
class BuildMachine:
    host_name: str
    max_jobs: int
    protocol: str
    supported_features: frozenset[str]
    systems: frozenset[str]

    def machines_line(self) -> str:
        """Render one line of a Nix ``machines`` file.

        Fields: uri, systems, ssh key, max jobs, speed factor, supported
        features, mandatory features, host public key. Key and host key come
        from the ssh client stanza, so both are ``-``.
        """
        systems = ','.join(sorted(self.systems)) or '-'
        features = ','.join(sorted(self.supported_features)) or '-'
        return (
            f'{self.protocol}://{self.host_name} {systems} - '
            f'{self.max_jobs} 1 {features} - -'
        )

    def as_dict(self) -> dict[str, object]:
        return {
            'hostName': self.host_name,
            'maxJobs': self.max_jobs,
            'protocol': self.protocol,
            'supportedFeatures': sorted(self.supported_features),
            'systems': sorted(self.systems),
        }


def build_machine(cfg: BuilderConfig) -> BuildMachine:
    cfg = cfg.expanded_paths()
    return BuildMachine(
        host_name=cfg.ssh.alias,
        max_jobs=int(cfg.vm.cpus),
        protocol=cfg.builders.protocol,
        supported_features=frozenset(cfg.builders.features),
        systems=frozenset(cfg.builders.systems),
    )


def nix_conf_fragment(machines_file: str = '/etc/nix/machines') -> str:
    """Host nix.conf lines that enable distributed builds via ``machines_file``."""
    return (
        f'builders = @{machines_file}\n'
        'builders-use-substitutes = true\n'
    )
