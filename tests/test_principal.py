"""Tests for host principal provisioning."""

from __future__ import annotations

from pathlib import Path

import pytest

from buildervm.config import BuilderConfig
from buildervm.errors import PrincipalMismatchError
from buildervm.principal import DirectoryService, _parse_dscl_int, ensure_principal
from buildervm.util import CmdResult


class FakeDirectory:
    def __init__(self, gid=None, uid=None):
        self.gid = gid
        self.uid = uid
        self.calls: list[tuple] = []

    def read_group_gid(self, group):
        return self.gid

    def create_group(self, group, gid):
        self.calls.append(('create_group', group, gid))

    def read_user_uid(self, user):
        return self.uid

    def create_user(self, user, uid, gid, home):
        self.calls.append(('create_user', user, uid, gid, home))

    def prepare_home(self, home, user, group):
        self.calls.append(('prepare_home', home, user, group))


def test_creates_missing_records(cfg: BuilderConfig) -> None:
    ds = FakeDirectory()
    actions = ensure_principal(cfg, ds)
    assert actions == [
        'create-group rosettabuilder',
        'create-user _rosettabuilder',
        f'create-dir {cfg.principal.working_dir}',
    ]
    assert ds.calls[0] == ('create_group', 'rosettabuilder', 349)
    assert ds.calls[1] == (
        'create_user', '_rosettabuilder', 349, 349, cfg.principal.working_dir
    )
    assert ds.calls[2][0] == 'prepare_home'


def test_matching_records_are_left_alone(cfg: BuilderConfig) -> None:
    Path(cfg.principal.working_dir).mkdir(parents=True)
    ds = FakeDirectory(gid=349, uid=349)
    assert ensure_principal(cfg, ds) == []
    assert [c[0] for c in ds.calls] == ['prepare_home']


@pytest.mark.parametrize(
    'gid, uid, match',
    [
        (501, None, 'PrimaryGroupID: 501'),
        (349, 502, 'UID: 502'),
        (None, 502, 'UID: 502'),
        (501, 349, 'PrimaryGroupID: 501'),
    ],
)
def test_mismatch_stops_before_any_change(cfg, gid, uid, match) -> None:
    ds = FakeDirectory(gid=gid, uid=uid)
    with pytest.raises(PrincipalMismatchError, match=match):
        ensure_principal(cfg, ds)
    assert ds.calls == []


def test_dry_run_reports_only(cfg: BuilderConfig) -> None:
    ds = FakeDirectory()
    actions = ensure_principal(cfg, ds, dry_run=True)
    assert len(actions) == 3
    assert ds.calls == []


def test_parse_dscl_int() -> None:
    assert _parse_dscl_int('PrimaryGroupID: 349\n', 'PrimaryGroupID') == 349
    assert _parse_dscl_int('RealName: x\n', 'PrimaryGroupID') is None
    assert _parse_dscl_int('PrimaryGroupID: abc\n', 'PrimaryGroupID') is None


def test_directory_service_commands(monkeypatch) -> None:
    calls = []

    def fake_run_cmd(cmd, **kwargs):
        calls.append((cmd, kwargs.get('sudo', False)))
        if cmd[0] == 'id':
            return CmdResult(0, '349\n', '')
        if cmd[:3] == ['dscl', '.', '-read']:
            return CmdResult(0, 'PrimaryGroupID: 349\n', '')
        return CmdResult(0, '', '')

    monkeypatch.setattr('buildervm.principal.run_cmd', fake_run_cmd)
    ds = DirectoryService()
    assert ds.read_group_gid('rosettabuilder') == 349
    assert ds.read_user_uid('_rosettabuilder') == 349
    calls.clear()
    ds.create_user('_rosettabuilder', 349, 349, '/var/lib/rosetta-builder')
    assert all(sudo for _, sudo in calls)
    assert calls[-1][0] == [
        'dscl', '.', '-create', '/Users/_rosettabuilder', 'UniqueID', '349'
    ]


def test_directory_service_missing_user(monkeypatch) -> None:
    monkeypatch.setattr(
        'buildervm.principal.run_cmd',
        lambda cmd, **kwargs: CmdResult(1, '', 'no such user'),
    )
    ds = DirectoryService()
    assert ds.read_user_uid('nobody-here') is None
    assert ds.read_group_gid('nobody-here') is None
