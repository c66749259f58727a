"""Path-addressed credential storage under the host working directory.

All host-side state the lifecycle depends on (keys, the trust store, the
transfer channel, the descriptor file) lives under one working directory.
``CredentialStore`` is the only component that touches those files, so the
lifecycle logic can be exercised against a temporary directory.
"""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

from loguru import logger

from .layout import HostLayout
from .util import atomic_write_text, ensure_dir

log = logger


class CredentialStore:
    def __init__(self, layout: HostLayout):
        self.layout = layout

    @property
    def root(self) -> Path:
        return self.layout.root

    def _resolve(self, path: Path | str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        return p

    def has(self, path: Path | str) -> bool:
        return self._resolve(path).exists()

    def read(self, path: Path | str) -> str:
        return self._resolve(path).read_text(encoding='utf-8')

    def write(self, path: Path | str, text: str, *, mode: int = 0o600) -> Path:
        return atomic_write_text(self._resolve(path), text, mode=mode)

    def discard(self, path: Path | str) -> None:
        self._resolve(path).unlink(missing_ok=True)

    def move_into(self, src: Path | str, dst_dir: Path | str) -> Path:
        src_p = self._resolve(src)
        dst = self._resolve(dst_dir) / src_p.name
        ensure_dir(dst.parent)
        shutil.move(str(src_p), str(dst))
        return dst

    def mode(self, path: Path | str) -> int:
        return stat.S_IMODE(self._resolve(path).stat().st_mode)

    def secure_root(self) -> None:
        """Drop group write and all other access on the working directory."""
        ensure_dir(self.root)
        current = self.mode(self.root)
        wanted = current & ~0o027
        if current != wanted:
            log.debug(
                'Restricting {} from {:o} to {:o}', self.root, current, wanted
            )
            os.chmod(self.root, wanted)
        os.umask(0o027)
