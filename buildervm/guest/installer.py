"""Guest-side installer for sshd's host key and the builder's authorized key.

Runs once per boot before sshd, and only while the authorized-keys file is
absent. The sequence is a small state machine::

    CHANNEL_ABSENT -> CHANNEL_MOUNTED -> KEYS_INSTALLED -> CHANNEL_REMOVED

Every action is safe to repeat, so a boot that failed half way is repaired by
the next one. The gate is the exception: once authorized keys exist the
installer never runs again, so a run that installed keys but failed to
unmount leaves the channel mounted until the next reboot.
"""

from __future__ import annotations

import enum
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Callable

from loguru import logger

from ..errors import ChannelMissingError, InstallerStepError
from ..layout import GuestLayout
from ..results import InstallResult
from ..util import run_cmd, umask

log = logger

CHANNEL_MOUNT_OPTS = 'nodev,noexec,nosuid,ro'


class InstallerState(enum.Enum):
    CHANNEL_ABSENT = 'channel-absent'
    CHANNEL_MOUNTED = 'channel-mounted'
    KEYS_INSTALLED = 'keys-installed'
    CHANNEL_REMOVED = 'channel-removed'


class GuestMounts:
    """virtiofs mount handling through the guest's mount tools."""

    def is_mounted(self, target: Path) -> bool:
        return (
            run_cmd(['mountpoint', '-q', str(target)], check=False).code == 0
        )

    def mount(self, tag: str, target: Path) -> None:
        run_cmd(
            ['mount', '-t', 'virtiofs', '-o', CHANNEL_MOUNT_OPTS, tag, str(target)],
            check=True,
        )

    def umount(self, target: Path) -> None:
        run_cmd(['umount', str(target)], check=True)


class GuestInstaller:
    def __init__(
        self,
        layout: GuestLayout,
        tag: str,
        *,
        mounts: GuestMounts | None = None,
        root: Path | str = '/',
    ):
        self.layout = layout
        self.tag = tag
        self.mounts = mounts or GuestMounts()
        self.root = Path(root)
        self.state = InstallerState.CHANNEL_ABSENT

    def _local(self, path: PurePosixPath) -> Path:
        return self.root / path.relative_to('/')

    @property
    def authorized_keys(self) -> Path:
        return self._local(self.layout.authorized_keys)

    @property
    def mount_dir(self) -> Path:
        return self._local(self.layout.mount_dir)

    def gate_open(self) -> bool:
        return not self.authorized_keys.exists()

    def install(self) -> InstallResult:
        result = InstallResult()
        if not self.gate_open():
            log.info(
                'Authorized keys already installed at {}; nothing to do.',
                self.authorized_keys,
            )
            result.skipped = True
            return result

        transitions: list[
            tuple[InstallerState, InstallerState, str, Callable[[InstallResult], None]]
        ] = [
            (
                InstallerState.CHANNEL_ABSENT,
                InstallerState.CHANNEL_MOUNTED,
                'mount-channel',
                self._mount_channel,
            ),
            (
                InstallerState.CHANNEL_MOUNTED,
                InstallerState.KEYS_INSTALLED,
                'install-keys',
                self._install_keys,
            ),
            (
                InstallerState.KEYS_INSTALLED,
                InstallerState.CHANNEL_REMOVED,
                'remove-channel',
                self._remove_channel,
            ),
        ]
        for src, dst, step, action in transitions:
            assert self.state is src, (self.state, src)
            log.debug('Installer step {}: {} -> {}', step, src.value, dst.value)
            try:
                action(result)
            except Exception as ex:
                log.error('Installer step {} failed: {}', step, ex)
                raise InstallerStepError(step, ex) from ex
            self.state = dst
            result.states.append(dst.value)
        log.info('Installed sshd keys from channel tag {}', self.tag)
        return result

    def _mount_channel(self, result: InstallResult) -> None:
        self.mount_dir.mkdir(parents=True, exist_ok=True)
        if self.mounts.is_mounted(self.mount_dir):
            log.debug('Channel already mounted at {}', self.mount_dir)
        else:
            self.mounts.mount(self.tag, self.mount_dir)
        missing = [
            str(p)
            for p in (
                self._local(self.layout.channel_host_private_key),
                self._local(self.layout.channel_user_public_key),
            )
            if not p.is_file()
        ]
        if missing:
            raise ChannelMissingError(
                f'Transfer channel {self.tag} is missing: {", ".join(missing)}'
            )

    def _install_keys(self, result: InstallResult) -> None:
        host_key = self._local(self.layout.host_private_key)
        host_key.parent.mkdir(parents=True, exist_ok=True)
        if host_key.exists():
            log.info('Keeping existing sshd host key {}', host_key)
            result.kept_host_key = True
        else:
            with umask(0o077):
                shutil.copyfile(
                    self._local(self.layout.channel_host_private_key), host_key
                )
            os.chmod(host_key, 0o600)

        auth = self.authorized_keys
        auth.parent.mkdir(parents=True, exist_ok=True)
        # Written under a temporary name so the gate only closes on a
        # complete file.
        tmp = auth.with_name(f'.{auth.name}.tmp')
        shutil.copyfile(self._local(self.layout.channel_user_public_key), tmp)
        os.chmod(tmp, 0o644)
        os.replace(tmp, auth)

    def _remove_channel(self, result: InstallResult) -> None:
        if self.mounts.is_mounted(self.mount_dir):
            self.mounts.umount(self.mount_dir)
        if self.mount_dir.exists():
            self.mount_dir.rmdir()
