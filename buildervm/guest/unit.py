"""systemd unit that runs the key installer before sshd."""

from __future__ import annotations

import shlex

from ..descriptor import GuestPlan

DEFAULT_EXECUTABLE = '/run/current-system/sw/bin/buildervm'


def installer_command(plan: GuestPlan, executable: str = DEFAULT_EXECUTABLE) -> list[str]:
    layout = plan.layout
    return [
        executable,
        'guest',
        'install',
        '--tag',
        plan.keys_mount_tag,
        '--user',
        layout.user,
        '--key_type',
        layout.key_type,
        '--ssh_dir',
        str(layout.ssh_dir),
        '--mount_dir',
        str(layout.mount_dir),
    ]


def render_installer_unit(
    plan: GuestPlan, executable: str = DEFAULT_EXECUTABLE
) -> str:
    exec_start = ' '.join(shlex.quote(c) for c in installer_command(plan, executable))
    return (
        '[Unit]\n'
        "Description=Install sshd's host and authorized keys\n"
        f'Before={plan.sshd_service}\n'
        f'ConditionPathExists=!{plan.layout.authorized_keys}\n'
        '\n'
        '[Service]\n'
        'Type=oneshot\n'
        f'ExecStart={exec_start}\n'
        '\n'
        '[Install]\n'
        f'RequiredBy={plan.sshd_service}\n'
    )
