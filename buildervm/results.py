"""Result dataclasses used by bootstrap and guest installer operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class BootstrapResult:
    user_key: Path
    host_public_key: Path
    channel_dir: Path
    known_hosts: Path


@dataclass
class InstallResult:
    skipped: bool = False
    states: list[str] = field(default_factory=list)
    kept_host_key: bool = False

    def as_dict(self) -> dict[str, object]:
        return {
            'skipped': self.skipped,
            'states': list(self.states),
            'kept_host_key': self.kept_host_key,
        }
