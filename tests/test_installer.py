"""Tests for the guest key installer and its systemd unit."""

from __future__ import annotations

import stat
from pathlib import Path, PurePosixPath

import pytest
from conftest import FakeMounts

from buildervm.config import BuilderConfig
from buildervm.descriptor import build_guest_plan
from buildervm.errors import ChannelMissingError, InstallerStepError
from buildervm.guest import GuestInstaller, InstallerState, render_installer_unit
from buildervm.guest.installer import GuestMounts
from buildervm.layout import GuestLayout
from buildervm.util import CmdResult


@pytest.fixture
def channel(tmp_path: Path) -> Path:
    d = tmp_path / 'host' / 'linux-sshd-keys'
    d.mkdir(parents=True)
    (d / 'ssh_host_ed25519_key').write_text('HOST-PRIVATE\n', encoding='utf-8')
    (d / 'ssh_user_ed25519_key.pub').write_text(
        'ssh-ed25519 USERPUB _rosettabuilder@darwin\n', encoding='utf-8'
    )
    return d


@pytest.fixture
def guest_root(tmp_path: Path) -> Path:
    root = tmp_path / 'guest'
    root.mkdir()
    return root


def _mode(p: Path) -> int:
    return stat.S_IMODE(p.stat().st_mode)


def _tree(root: Path) -> list[tuple[str, int]]:
    return sorted((str(p.relative_to(root)), p.stat().st_mtime_ns) for p in root.rglob('*'))


def test_install_sequence(channel: Path, guest_root: Path) -> None:
    mounts = FakeMounts(channel)
    inst = GuestInstaller(GuestLayout(), 'mount0', mounts=mounts, root=guest_root)
    result = inst.install()

    assert result.skipped is False
    assert result.states == [
        'channel-mounted',
        'keys-installed',
        'channel-removed',
    ]
    assert inst.state is InstallerState.CHANNEL_REMOVED
    host_key = guest_root / 'etc/ssh/ssh_host_ed25519_key'
    auth = guest_root / 'etc/ssh/authorized_keys.d/builder'
    assert host_key.read_text(encoding='utf-8') == 'HOST-PRIVATE\n'
    assert _mode(host_key) == 0o600
    assert 'USERPUB' in auth.read_text(encoding='utf-8')
    assert _mode(auth) & 0o444 == 0o444
    assert not (guest_root / 'var/sshd-keys').exists()
    assert [c[0] for c in mounts.calls] == ['mount', 'umount']
    assert mounts.calls[0][1] == 'mount0'


def test_rerun_after_install_mutates_nothing(channel: Path, guest_root: Path) -> None:
    GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(channel), root=guest_root
    ).install()
    before = _tree(guest_root)

    mounts = FakeMounts(channel)
    result = GuestInstaller(
        GuestLayout(), 'mount0', mounts=mounts, root=guest_root
    ).install()
    assert result.skipped is True
    assert mounts.calls == []
    assert _tree(guest_root) == before


def test_reinstall_after_authorized_keys_deleted(channel: Path, guest_root: Path) -> None:
    GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(channel), root=guest_root
    ).install()
    auth = guest_root / 'etc/ssh/authorized_keys.d/builder'
    auth.unlink()
    # the guest mount point was already removed by the first run
    assert not (guest_root / 'var/sshd-keys').exists()

    result = GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(channel), root=guest_root
    ).install()
    assert result.skipped is False
    assert result.kept_host_key is True
    assert 'USERPUB' in auth.read_text(encoding='utf-8')


def test_existing_host_key_is_not_overwritten(channel: Path, guest_root: Path) -> None:
    host_key = guest_root / 'etc/ssh/ssh_host_ed25519_key'
    host_key.parent.mkdir(parents=True)
    host_key.write_text('ALREADY-INSTALLED\n', encoding='utf-8')
    GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(channel), root=guest_root
    ).install()
    assert host_key.read_text(encoding='utf-8') == 'ALREADY-INSTALLED\n'


def test_scrubbed_channel_fails_closed(channel: Path, guest_root: Path) -> None:
    for f in channel.iterdir():
        f.unlink()
    inst = GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(channel), root=guest_root
    )
    with pytest.raises(InstallerStepError) as info:
        inst.install()
    assert info.value.step == 'mount-channel'
    assert isinstance(info.value.cause, ChannelMissingError)
    assert inst.state is InstallerState.CHANNEL_ABSENT
    assert not (guest_root / 'etc/ssh/authorized_keys.d/builder').exists()


def test_unshared_channel_fails_closed(guest_root: Path) -> None:
    inst = GuestInstaller(
        GuestLayout(), 'mount0', mounts=FakeMounts(None), root=guest_root
    )
    with pytest.raises(InstallerStepError, match='mount-channel'):
        inst.install()
    assert not (guest_root / 'etc/ssh').exists()


def test_already_mounted_channel_is_reused(channel: Path, guest_root: Path) -> None:
    mounts = FakeMounts(channel)
    mount_dir = guest_root / 'var/sshd-keys'
    mount_dir.mkdir(parents=True)
    mounts.mount('mount0', mount_dir)
    mounts.calls.clear()
    GuestInstaller(GuestLayout(), 'mount0', mounts=mounts, root=guest_root).install()
    assert [c[0] for c in mounts.calls] == ['umount']


def test_guest_mounts_commands(monkeypatch, tmp_path: Path) -> None:
    calls = []
    monkeypatch.setattr(
        'buildervm.guest.installer.run_cmd',
        lambda cmd, **kwargs: (calls.append(cmd) or CmdResult(1, '', '')),
    )
    mounts = GuestMounts()
    assert mounts.is_mounted(tmp_path) is False
    mounts.mount('mount0', tmp_path)
    mounts.umount(tmp_path)
    assert calls[1] == [
        'mount', '-t', 'virtiofs', '-o', 'nodev,noexec,nosuid,ro', 'mount0', str(tmp_path)
    ]
    assert calls[2] == ['umount', str(tmp_path)]


def test_installer_unit(cfg: BuilderConfig) -> None:
    plan = build_guest_plan(cfg)
    text = render_installer_unit(plan, '/bin/buildervm')
    assert 'Before=sshd.service' in text
    assert 'RequiredBy=sshd.service' in text
    assert 'Type=oneshot' in text
    assert 'ConditionPathExists=!/etc/ssh/authorized_keys.d/builder' in text
    assert 'ExecStart=/bin/buildervm guest install --tag mount0 --user builder' in text


def test_custom_layout_paths() -> None:
    layout = GuestLayout(
        user='nix', ssh_dir=PurePosixPath('/srv/ssh'), mount_dir=PurePosixPath('/run/k')
    )
    assert str(layout.authorized_keys) == '/srv/ssh/authorized_keys.d/nix'
    assert str(layout.channel_user_public_key) == '/run/k/ssh_user_ed25519_key.pub'
