"""Guest-side commands; these run inside the VM, not on the host."""

from __future__ import annotations

from pathlib import PurePosixPath

import scriptconfig as scfg

from ..descriptor import build_guest_plan
from ..guest import GuestInstaller, render_installer_unit
from ..guest.unit import DEFAULT_EXECUTABLE
from ..layout import GuestLayout
from ._common import _BaseCommand, _load_cfg


class GuestInstallCLI(_BaseCommand):
    """Install sshd's host key and the authorized key from the channel."""

    tag = scfg.Value('mount0', help='virtiofs tag of the transfer channel.')
    user = scfg.Value('builder', help='Guest user receiving the authorized key.')
    key_type = scfg.Value('ed25519', help='SSH key algorithm.')
    ssh_dir = scfg.Value('/etc/ssh', help='sshd configuration directory.')
    mount_dir = scfg.Value('/var/sshd-keys', help='Where to mount the channel.')
    root = scfg.Value('/', help='Filesystem root (for image builds and tests).')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        layout = GuestLayout(
            user=str(args.user),
            key_type=str(args.key_type),
            ssh_dir=PurePosixPath(args.ssh_dir),
            mount_dir=PurePosixPath(args.mount_dir),
        )
        result = GuestInstaller(layout, str(args.tag), root=str(args.root)).install()
        if result.skipped:
            print('authorized keys already present; skipped')
        return 0


class GuestUnitCLI(_BaseCommand):
    """Print the systemd unit that runs the installer before sshd."""

    executable = scfg.Value(
        DEFAULT_EXECUTABLE, help='buildervm path inside the guest.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        plan = build_guest_plan(_load_cfg(args.config))
        print(render_installer_unit(plan, str(args.executable)), end='')
        return 0


class GuestModalCLI(scfg.ModalCLI):
    """Guest-side key installation."""

    install = GuestInstallCLI
    unit = GuestUnitCLI
