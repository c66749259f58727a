"""Host side of the one-shot credential transfer channel."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .state import CredentialStore
from .util import ensure_dir

log = logger


class TransferChannel:
    """Directory shared read-only into the guest during the first boot.

    It holds exactly the host private key and the user public key. The
    directory itself stays in place after it is scrubbed because the VM
    descriptor keeps referencing it as a mount.
    """

    def __init__(self, store: CredentialStore):
        self.store = store

    @property
    def path(self) -> Path:
        return self.store.layout.channel_dir

    @property
    def expected_names(self) -> tuple[str, str]:
        layout = self.store.layout
        return (layout.host_private_key.name, layout.user_public_key.name)

    def create(self) -> Path:
        ensure_dir(self.path)
        return self.path

    def populate(self, host_private_key: Path, user_public_key: Path) -> None:
        for src in (host_private_key, user_public_key):
            dst = self.store.move_into(src, self.path)
            log.debug('Staged {} in transfer channel', dst.name)
        log.info('Transfer channel populated: {}', self.path)

    def contents(self) -> list[str]:
        if not self.path.is_dir():
            return []
        return sorted(p.name for p in self.path.iterdir())

    def is_populated(self) -> bool:
        present = set(self.contents())
        return all(name in present for name in self.expected_names)

    def scrub(self) -> list[str]:
        """Delete staged key material, keeping the (now empty) mount source."""
        removed = []
        for name in self.contents():
            self.store.discard(self.path / name)
            removed.append(name)
        if removed:
            log.info('Scrubbed transfer channel {}: {}', self.path, removed)
        else:
            log.info('Transfer channel already empty: {}', self.path)
        return removed
