from __future__ import annotations

import os
import sys
from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import BuilderConfig, default_config_path, load

log = logger

CONFIG_ENV = 'BUILDERVM_CONFIG'


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None,
        help=f'Path to config TOML (default: ${CONFIG_ENV} or the user config dir).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )
    yes = scfg.Value(
        False,
        isflag=True,
        help='Auto-approve privileged host operations (sudo).',
    )


def _cfg_path(p: str | None) -> Path:
    raw = p or os.environ.get(CONFIG_ENV) or ''
    if raw:
        return Path(raw).expanduser().resolve()
    return default_config_path()


def _load_cfg_with_path(config_path: str | None) -> tuple[BuilderConfig, Path]:
    path = _cfg_path(config_path)
    if path.exists():
        cfg = load(path)
    elif config_path is not None:
        raise FileNotFoundError(
            f'Config not found: {path}. Run: buildervm config init --config {path}'
        )
    else:
        log.debug('No config at {}; using built-in defaults', path)
        cfg = BuilderConfig()
    return cfg.expanded_paths(), path


def _load_cfg(config_path: str | None) -> BuilderConfig:
    cfg, _ = _load_cfg_with_path(config_path)
    return cfg


def _confirm_sudo_block(*, yes: bool, actions: list[str]) -> None:
    """Ask before running ``actions`` through sudo unless pre-approved."""
    if yes or os.geteuid() == 0:
        return
    if not sys.stdin.isatty():
        raise RuntimeError(
            'Creating host accounts needs sudo; re-run with --yes when '
            'stdin is not a terminal.'
        )
    print('These steps run through sudo:')
    for action in actions:
        print(f'  - {action}')
    if input('Proceed? [y/N]: ').strip().lower() not in {'y', 'yes'}:
        raise RuntimeError('Aborted by user.')


def _emit(text: str, out: str) -> None:
    """Print ``text`` or write it to ``out`` when a path is given."""
    if not out:
        print(text, end='' if text.endswith('\n') else '\n')
        return
    path = Path(out).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    log.info('Wrote {}', path)


__all__ = [name for name in globals() if not name.startswith('__')]
