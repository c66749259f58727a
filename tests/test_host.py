"""Tests for host command and platform checks."""

from __future__ import annotations

from buildervm.host import check_commands, host_is_apple_silicon, host_is_darwin


def test_check_commands(monkeypatch) -> None:
    present = {'ssh', 'ssh-keygen', 'dscl'}
    monkeypatch.setattr(
        'buildervm.host.which',
        lambda cmd: f'/usr/bin/{cmd}' if cmd in present else None,
    )
    missing, missing_opt = check_commands()
    assert missing == ['limactl']
    assert missing_opt == ['launchctl']


def test_host_platform(monkeypatch) -> None:
    monkeypatch.setattr('buildervm.host.platform.system', lambda: 'Darwin')
    monkeypatch.setattr('buildervm.host.platform.machine', lambda: 'arm64')
    assert host_is_darwin() is True
    assert host_is_apple_silicon() is True
    monkeypatch.setattr('buildervm.host.platform.machine', lambda: 'x86_64')
    assert host_is_apple_silicon() is False
    monkeypatch.setattr('buildervm.host.platform.system', lambda: 'Linux')
    assert host_is_darwin() is False
