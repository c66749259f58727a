"""Shared fakes for the hypervisor, ssh-keygen, and guest mounts."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from buildervm.config import BuilderConfig
from buildervm.errors import VMListError
from buildervm.util import CmdError, CmdResult


class FakeHypervisor:
    def __init__(self, instances=(), *, list_error: bool = False, exit_code: int = 0):
        self.instances = set(instances)
        self.list_error = list_error
        self.exit_code = exit_code
        self.created: list[tuple[str, Path]] = []
        self.started: list[tuple[str, bool]] = []
        self.on_create = None

    def list_instances(self) -> list[str]:
        if self.list_error:
            raise VMListError('limactl list failed')
        return sorted(self.instances)

    def exists(self, name: str) -> bool:
        return name in self.list_instances()

    def create(self, name: str, descriptor_file: Path) -> bool:
        if self.on_create is not None:
            self.on_create(name, descriptor_file)
        self.created.append((name, descriptor_file))
        if name in self.instances:
            return False
        self.instances.add(name)
        return True

    def start_foreground(self, name: str, *, debug: bool = False) -> int:
        self.started.append((name, debug))
        return self.exit_code


class FakeMounts:
    """Simulates the virtiofs mount by copying the host channel directory."""

    def __init__(self, source: Path | None):
        self.source = source
        self.mounted: set[Path] = set()
        self.calls: list[tuple] = []

    def is_mounted(self, target: Path) -> bool:
        return target in self.mounted

    def mount(self, tag: str, target: Path) -> None:
        self.calls.append(('mount', tag, target))
        if self.source is None or not self.source.is_dir():
            raise CmdError(
                ['mount', '-t', 'virtiofs', tag, str(target)],
                CmdResult(32, '', f'mount: {tag}: special device does not exist'),
            )
        for f in self.source.iterdir():
            shutil.copyfile(f, target / f.name)
        self.mounted.add(target)

    def umount(self, target: Path) -> None:
        self.calls.append(('umount', target))
        for f in target.iterdir():
            f.unlink()
        self.mounted.discard(target)


@pytest.fixture
def cfg(tmp_path: Path) -> BuilderConfig:
    cfg = BuilderConfig()
    cfg.principal.working_dir = str(tmp_path / 'work')
    cfg.vm.image = '/nix/store/fake-image/nixos.qcow2'
    return cfg.expanded_paths()


@pytest.fixture
def fake_keygen(monkeypatch):
    """Replace ssh-keygen with a writer of deterministic fake key files."""
    calls: list[list[str]] = []

    def fake_run_cmd(cmd, **kwargs):
        calls.append(list(cmd))
        assert cmd[0] == 'ssh-keygen'
        path = Path(cmd[cmd.index('-f') + 1])
        key_type = cmd[cmd.index('-t') + 1]
        comment = cmd[cmd.index('-C') + 1]
        n = len(calls)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f'PRIVATE-{key_type}-{n}\n', encoding='utf-8')
        Path(str(path) + '.pub').write_text(
            f'ssh-{key_type} PUBLIC{n} {comment}\n', encoding='utf-8'
        )
        return CmdResult(0, '', '')

    monkeypatch.setattr('buildervm.keys.run_cmd', fake_run_cmd)
    return calls
