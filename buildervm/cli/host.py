from __future__ import annotations

import sys

import scriptconfig as scfg

from ..builders import build_machine, nix_conf_fragment
from ..errors import PrincipalMismatchError
from ..host import check_commands, host_is_apple_silicon
from ..principal import ensure_principal
from ..supervisor import render_launchd_plist, supervisor_spec
from ..trust import render_client_stanza, write_client_config
from ._common import (
    _BaseCommand,
    _cfg_path,
    _confirm_sudo_block,
    _emit,
    _load_cfg,
    log,
)


class DoctorCLI(_BaseCommand):
    """Check host prerequisites and list missing required tools."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        cls.cli(argv=argv, data=kwargs)
        missing, missing_opt = check_commands()
        if not host_is_apple_silicon():
            print('➖ Host is not Apple silicon; x86_64 emulation will be unavailable.')
        if missing:
            print('❌ Missing required commands:', ', '.join(missing))
            return 2
        if missing_opt:
            print('➖ Missing optional commands:', ', '.join(missing_opt))
        print('✅ Required host commands are present.')
        return 0


class PrincipalCLI(_BaseCommand):
    """Create the dedicated host group/user and its working directory."""

    dry_run = scfg.Value(
        False, isflag=True, help='Print actions without running.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        try:
            # The dry run also surfaces an id mismatch before any prompt.
            actions = ensure_principal(cfg, dry_run=True)
            if not args.dry_run:
                _confirm_sudo_block(
                    yes=bool(args.yes),
                    actions=[*actions, f'chown {cfg.principal.working_dir}'],
                )
                actions = ensure_principal(cfg)
        except PrincipalMismatchError as ex:
            print(f'\x1b[1;31merror: {ex}\x1b[0m', file=sys.stderr)
            log.error('Host principal mismatch: {}', ex)
            return 1
        if not actions:
            print(f'✅ Host principal {cfg.principal.user} already set up.')
        for action in actions:
            print(f'{"DRYRUN: " if args.dry_run else ""}{action}')
        return 0


class EmitCLI(_BaseCommand):
    """Emit host-side config: ssh stanza, launchd plist, machines line, nix.conf."""

    kind = scfg.Value(
        'ssh', help='One of: ssh, launchd, machines, nix.'
    )
    out = scfg.Value('', help='Write to this path instead of stdout.')
    install = scfg.Value(
        False,
        isflag=True,
        help='For kind=ssh, write the stanza into the ssh_config.d directory.',
    )
    executable = scfg.Value(
        'buildervm', help='For kind=launchd, the buildervm executable path.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        kind = str(args.kind or '').strip().lower()
        if kind == 'ssh':
            if args.install:
                print(str(write_client_config(cfg)))
                return 0
            _emit(render_client_stanza(cfg), args.out)
        elif kind == 'launchd':
            cfg_path = _cfg_path(args.config)
            spec = supervisor_spec(
                cfg,
                executable=str(args.executable),
                config_path=str(cfg_path) if cfg_path.exists() else '',
            )
            _emit(render_launchd_plist(spec), args.out)
        elif kind == 'machines':
            _emit(build_machine(cfg).machines_line(), args.out)
        elif kind == 'nix':
            _emit(nix_conf_fragment(), args.out)
        else:
            raise RuntimeError('--kind must be one of: launchd, machines, nix, ssh')
        return 0


class HostModalCLI(scfg.ModalCLI):
    """Host preparation and host-level config emission."""

    doctor = DoctorCLI
    principal = PrincipalCLI
    emit = EmitCLI
