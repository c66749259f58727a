"""Tests for config."""

from __future__ import annotations

import tomllib
from pathlib import Path

from buildervm.config import BuilderConfig, dump_toml, load, save


def test_dump_load_roundtrip(tmp_path: Path) -> None:
    cfg = BuilderConfig()
    cfg.vm.name = 'my "builder"'
    cfg.vm.cpus = 4
    cfg.vm.debug = True
    cfg.principal.working_dir = '~/work/${USER}/builder'
    cfg.builders.features = ['kvm', 'big-parallel']
    cfg.verbosity = 3
    fpath = tmp_path / 'config.toml'
    save(fpath, cfg)

    cfg2 = load(fpath)
    assert cfg2.vm.name == cfg.vm.name
    assert cfg2.vm.cpus == 4
    assert cfg2.vm.debug is True
    assert cfg2.principal.working_dir == cfg.principal.working_dir
    assert cfg2.builders.features == ['kvm', 'big-parallel']
    assert cfg2.verbosity == 3


def test_dump_toml_verbosity_default_omitted() -> None:
    text = dump_toml(BuilderConfig())
    assert 'verbosity =' not in text
    assert '[principal]' in text
    assert 'uid = 349' in text


def test_expanded_paths_derives_alias_and_hostname(monkeypatch) -> None:
    monkeypatch.setenv('BUILDERVM_TEST_DIR', '/tmp/bvm-x')
    cfg = BuilderConfig()
    cfg.principal.working_dir = '$BUILDERVM_TEST_DIR/work'
    out = cfg.expanded_paths()
    assert out.principal.working_dir == '/tmp/bvm-x/work'
    assert out.ssh.alias == 'rosetta-builder'
    assert out.guest.hostname == 'rosetta-builder'
    assert out.host_key_alias == 'rosetta-builder-key'
    assert out.vm.instance_name == 'rosetta-builder-vm'


def test_explicit_alias_is_kept() -> None:
    cfg = BuilderConfig()
    cfg.ssh.alias = 'linux-builder'
    cfg.expanded_paths()
    assert cfg.ssh.alias == 'linux-builder'
    assert cfg.host_key_alias == 'linux-builder-key'


def test_verbosity_written_before_tables() -> None:
    cfg = BuilderConfig()
    cfg.verbosity = 2
    text = dump_toml(cfg)
    assert text.index('verbosity = 2') < text.index('[vm]')
    raw = tomllib.loads(text)
    assert raw['verbosity'] == 2
    assert 'verbosity' not in raw['builders']
