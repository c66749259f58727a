"""Host dependency checks for the macOS side."""

from __future__ import annotations

import platform

from .util import which

REQUIRED_CMDS = [
    'limactl',
    'ssh-keygen',
    'ssh',
]
OPTIONAL_CMDS = ['dscl', 'launchctl']


def check_commands() -> tuple[list[str], list[str]]:
    missing = [c for c in REQUIRED_CMDS if which(c) is None]
    missing_opt = [c for c in OPTIONAL_CMDS if which(c) is None]
    return missing, missing_opt


def host_is_darwin() -> bool:
    return platform.system() == 'Darwin'


def host_is_apple_silicon() -> bool:
    return host_is_darwin() and platform.machine() in {'arm64', 'aarch64'}
