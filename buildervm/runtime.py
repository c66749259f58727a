"""Runtime helpers for constructing limactl and SSH command arguments."""

from __future__ import annotations

from pathlib import Path


def limactl_cmd(*args: str) -> list[str]:
    return ['limactl', *args]


def ssh_base_args(
    config_file: Path | str,
    *,
    connect_timeout: int | None = None,
    batch_mode: bool = False,
) -> list[str]:
    args: list[str] = ['-F', str(config_file)]
    if batch_mode:
        args.extend(['-o', 'BatchMode=yes'])
    if connect_timeout is not None:
        args.extend(['-o', f'ConnectTimeout={connect_timeout}'])
    # Never relax host key checking, whatever the stanza says.
    args.extend(['-o', 'StrictHostKeyChecking=yes'])
    return args
