"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ..errors import PrincipalMismatchError
from ..status import render_status
from ._common import _BaseCommand, _cfg_path, _load_cfg, log
from .config import ConfigModalCLI
from .guest import GuestModalCLI
from .host import HostModalCLI
from .vm import VMModalCLI


class StatusCLI(_BaseCommand):
    """Report host principal, VM definition, trust, channel, and SSH state."""

    detail = scfg.Value(
        False,
        isflag=True,
        help='Include raw diagnostics for each probe.',
    )
    no_ssh = scfg.Value(
        False, isflag=True, help='Skip the SSH connection probe.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        print(
            render_status(cfg, detail=bool(args.detail), probe_ssh=not args.no_ssh),
            end='',
        )
        return 0


class BuilderVMModalCLI(scfg.ModalCLI):
    """Single Lima-hosted Linux builder VM with bootstrapped SSH trust."""

    config = ConfigModalCLI
    host = HostModalCLI
    vm = VMModalCLI
    guest = GuestModalCLI
    status = StatusCLI


# Exit statuses for failures escaping a command. A host account with the
# wrong numeric id needs an operator, so it is reported distinctly.
EXIT_PRINCIPAL_MISMATCH = 1
EXIT_FAILURE = 2

LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>'
)


def main(argv: list[str] | None = None) -> None:
    argv = _normalize_argv(sys.argv[1:] if argv is None else list(argv))
    _setup_logging(_count_verbose(argv), _configured_verbosity(argv))
    try:
        rc = BuilderVMModalCLI.main(argv=argv, _noexit=True)
    except PrincipalMismatchError as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Host principal mismatch: {}', ex)
        sys.exit(EXIT_PRINCIPAL_MISMATCH)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.opt(exception=ex).debug('buildervm command failed')
        sys.exit(EXIT_FAILURE)
    if '-h' in argv or '--help' in argv:
        sys.exit(0)
    sys.exit(rc if isinstance(rc, int) else 0)


def _configured_verbosity(argv: list[str]) -> int:
    """Verbosity from the config file the command will load, if readable."""
    config_value = None
    if '--config' in argv[:-1]:
        config_value = argv[argv.index('--config') + 1]
    if config_value is None and not _cfg_path(None).exists():
        return 1
    try:
        return _load_cfg(config_value).verbosity
    except (OSError, ValueError):
        # The command itself reports an unreadable config.
        return 1


def _setup_logging(args_verbose: int, cfg_verbosity: int) -> None:
    verbosity = args_verbose or cfg_verbosity
    level = {0: 'WARNING', 1: 'INFO'}.get(verbosity, 'DEBUG')
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.remove()
    logger.add(sys.stderr, level=level, colorize=colorize, format=LOG_FORMAT)
    log.debug('Logging at {} (verbosity={})', level, verbosity)


def _normalize_argv(argv: list[str]) -> list[str]:
    """Map shorthand and hyphenated spellings onto scriptconfig command names."""
    if argv[:1] == ['init']:
        return ['config', 'init', *argv[1:]]
    if argv[:1] == ['serve']:
        return ['vm', 'serve', *argv[1:]]
    aliases = {
        ('vm', 'run'): 'start',
        ('vm', 'scrub-channel'): 'scrub',
        ('guest', 'install-keys'): 'install',
    }
    sub = aliases.get(tuple(argv[:2]))
    if sub is not None:
        return [argv[0], sub, *argv[2:]]
    return argv


def _count_verbose(argv: list[str]) -> int:
    count = argv.count('--verbose')
    for item in argv:
        if len(item) > 1 and item[0] == '-' and item[1] != '-':
            if set(item[1:]) == {'v'}:
                count += len(item) - 1
    return count
