"""Thin limactl wrapper: list, create, and foreground start of instances."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ..errors import VMCreateError, VMListError
from ..runtime import limactl_cmd
from ..util import CmdError, run_cmd

log = logger


class LimaHypervisor:
    def __init__(self, *, cwd: Path | None = None):
        self._cwd = cwd

    @property
    def cwd(self) -> Path | None:
        # limactl resolves relative paths against the working directory,
        # which does not exist before the first bootstrap.
        if self._cwd is not None and self._cwd.is_dir():
            return self._cwd
        return None

    def list_instances(self) -> list[str]:
        try:
            res = run_cmd(
                limactl_cmd('list', '-q'), check=True, capture=True, cwd=self.cwd
            )
        except (CmdError, OSError) as ex:
            raise VMListError(f'Could not list Lima instances: {ex}') from ex
        return res.lines()

    def exists(self, name: str) -> bool:
        return name in self.list_instances()

    def create(self, name: str, descriptor_file: Path) -> bool:
        """Define ``name``; returns False when it turned out to exist already."""
        cmd = limactl_cmd('create', f'--name={name}', str(descriptor_file))
        try:
            run_cmd(cmd, check=True, capture=True, cwd=self.cwd)
        except CmdError as ex:
            if ex.mentions('already exists'):
                log.warning(
                    'Instance {} appeared between the existence check and create; '
                    'keeping the existing definition.',
                    name,
                )
                return False
            raise VMCreateError(f'limactl create failed for {name}: {ex}') from ex
        return True

    def start_foreground(self, name: str, *, debug: bool = False) -> int:
        cmd = limactl_cmd('start')
        if debug:
            cmd.append('--debug')
        cmd.extend(['--foreground', name])
        res = run_cmd(cmd, check=False, capture=False, cwd=self.cwd)
        return res.code
