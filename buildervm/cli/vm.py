"""CLI commands for the builder VM lifecycle."""

from __future__ import annotations

import scriptconfig as scfg

from ..channel import TransferChannel
from ..descriptor import build_descriptor, build_guest_plan
from ..supervisor import supervise
from ..vm import LifecycleController
from ._common import _BaseCommand, _load_cfg, log


class VMEnsureCLI(_BaseCommand):
    """Bootstrap keys and define the VM if it does not exist yet."""

    dry_run = scfg.Value(
        False, isflag=True, help='Print actions without running.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        ctl = LifecycleController(_load_cfg(args.config))
        if args.dry_run:
            defined = ctl.is_defined()
            ctl.ensure_defined(dry_run=True)
            outcome = 'already defined' if defined else 'would be created (dry run)'
            print(f'{ctl.name}: {outcome}')
            return 0
        created = ctl.ensure_defined()
        print(f'{ctl.name}: {"created" if created else "already defined"}')
        return 0


class VMRunCLI(_BaseCommand):
    """Start the defined VM in the foreground and block until it exits."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        LifecycleController(_load_cfg(args.config)).run()
        # Any VM exit is a normal termination.
        return 0


class VMServeCLI(_BaseCommand):
    """Supervised entry point: ensure the VM is defined, then run it."""

    restart = scfg.Value(
        False,
        isflag=True,
        help='Restart in-process after every exit instead of relying on launchd.',
    )
    restart_delay = scfg.Value(5.0, type=float, help='Seconds between restarts.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        if args.restart:
            log.info('Supervising {} in-process', cfg.vm.instance_name)
            return supervise(
                lambda: LifecycleController(cfg).serve(),
                delay_s=float(args.restart_delay),
            )
        LifecycleController(cfg).serve()
        return 0


class VMDescriptorCLI(_BaseCommand):
    """Print the VM descriptor (Lima YAML) or the derived guest plan."""

    guest = scfg.Value(
        False, isflag=True, help='Print the guest plan instead.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        descriptor = build_descriptor(cfg)
        if args.guest:
            print(build_guest_plan(cfg, descriptor).to_yaml(), end='')
        else:
            print(descriptor.to_yaml(), end='')
        return 0


class VMScrubCLI(_BaseCommand):
    """Delete staged key material from the host side of the transfer channel."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        ctl = LifecycleController(_load_cfg(args.config))
        removed = TransferChannel(ctl.store).scrub()
        for name in removed:
            print(f'removed {name}')
        return 0


class VMModalCLI(scfg.ModalCLI):
    """VM lifecycle subcommands."""

    ensure = VMEnsureCLI
    start = VMRunCLI
    serve = VMServeCLI
    descriptor = VMDescriptorCLI
    scrub = VMScrubCLI
