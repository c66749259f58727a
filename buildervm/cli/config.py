from __future__ import annotations

import sys

import scriptconfig as scfg

from ..config import BuilderConfig, dump_toml, save
from ._common import _BaseCommand, _cfg_path, _load_cfg_with_path


class InitCLI(_BaseCommand):
    """Write a config file with the built-in defaults."""

    image = scfg.Value('', help='Path or URL of the guest disk image.')
    cpus = scfg.Value(None, type=int, help='Override vm.cpus.')
    memory = scfg.Value('', help='Override vm.memory (e.g. 6GiB).')
    debug = scfg.Value(
        False,
        isflag=True,
        help='Enable guest sudo/autologin and limactl --debug.',
    )
    force = scfg.Value(
        False, isflag=True, help='Overwrite an existing config file.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = _cfg_path(args.config)
        if path.exists() and not args.force:
            print(f'Config already exists: {path}', file=sys.stderr)
            print('Use --force to overwrite it.', file=sys.stderr)
            return 2
        cfg = BuilderConfig()
        if args.image:
            cfg.vm.image = str(args.image)
        if args.cpus:
            cfg.vm.cpus = int(args.cpus)
        if args.memory:
            cfg.vm.memory = str(args.memory)
        cfg.vm.debug = bool(args.debug)
        save(path, cfg)
        print(f'Wrote config: {path}')
        return 0


class ConfigShowCLI(_BaseCommand):
    """Show the resolved config."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg, path = _load_cfg_with_path(args.config)
        print(f'# Config: {path}{"" if path.exists() else " (defaults)"}')
        print(dump_toml(cfg), end='')
        return 0


class ConfigModalCLI(scfg.ModalCLI):
    """Config file management."""

    init = InitCLI
    show = ConfigShowCLI
