"""Guest-side key installation and its systemd wiring."""

from __future__ import annotations

from .installer import GuestInstaller, GuestMounts, InstallerState
from .unit import installer_command, render_installer_unit

__all__ = [
    'GuestInstaller',
    'GuestMounts',
    'InstallerState',
    'installer_command',
    'render_installer_unit',
]
