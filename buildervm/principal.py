"""Dedicated host account that owns the working directory and runs the VM.

Records are created once. An existing record with a different numeric id is
never repaired automatically: provisioning stops and reports the mismatch.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import BuilderConfig
from .errors import PrincipalMismatchError
from .util import run_cmd

log = logger


def _parse_dscl_int(text: str, key: str) -> int | None:
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0].rstrip(':') == key:
            try:
                return int(parts[-1])
            except ValueError:
                return None
    return None


class DirectoryService:
    """macOS directory records through ``dscl`` and ``id``."""

    def read_group_gid(self, group: str) -> int | None:
        res = run_cmd(
            ['dscl', '.', '-read', f'/Groups/{group}', 'PrimaryGroupID'],
            check=False,
        )
        if res.code != 0:
            return None
        return _parse_dscl_int(res.stdout, 'PrimaryGroupID')

    def create_group(self, group: str, gid: int) -> None:
        run_cmd(
            ['dscl', '.', '-create', f'/Groups/{group}', 'PrimaryGroupID', str(gid)],
            sudo=True,
        )

    def read_user_uid(self, user: str) -> int | None:
        res = run_cmd(['id', '-u', user], check=False)
        if res.code != 0:
            return None
        return int(res.stdout.strip())

    def create_user(self, user: str, uid: int, gid: int, home: str) -> None:
        path = f'/Users/{user}'
        for attrs in (
            [],
            ['PrimaryGroupID', str(gid)],
            ['NFSHomeDirectory', home],
            ['UserShell', '/usr/bin/false'],
            ['IsHidden', '1'],
            # Last, so `id` only resolves the user once it is complete.
            ['UniqueID', str(uid)],
        ):
            run_cmd(['dscl', '.', '-create', path, *attrs], sudo=True)

    def prepare_home(self, home: str, user: str, group: str) -> None:
        run_cmd(['mkdir', '-p', home], sudo=True)
        run_cmd(['chown', f'{user}:{group}', home], sudo=True)


def ensure_principal(
    cfg: BuilderConfig,
    ds: DirectoryService | None = None,
    *,
    dry_run: bool = False,
) -> list[str]:
    """Create the group, user, and working directory if needed.

    Both records are read and checked before anything is created, so a
    mismatch on either one leaves the host untouched.

    Returns the list of actions taken (empty when everything already matched).
    """
    cfg = cfg.expanded_paths()
    ds = ds or DirectoryService()
    p = cfg.principal

    gid = ds.read_group_gid(p.group)
    uid = ds.read_user_uid(p.user)
    if gid is not None and gid != p.gid:
        raise PrincipalMismatchError(
            f'existing group: {p.group} has unexpected PrimaryGroupID: {gid} '
            f'(expected {p.gid})'
        )
    if uid is not None and uid != p.uid:
        raise PrincipalMismatchError(
            f'existing user: {p.user} has unexpected UID: {uid} (expected {p.uid})'
        )

    actions: list[str] = []
    if gid is None:
        log.info('Creating group {} (gid={})', p.group, p.gid)
        actions.append(f'create-group {p.group}')
        if not dry_run:
            ds.create_group(p.group, p.gid)
    if uid is None:
        log.info('Creating user {} (uid={})', p.user, p.uid)
        actions.append(f'create-user {p.user}')
        if not dry_run:
            ds.create_user(p.user, p.uid, p.gid, p.working_dir)

    log.info('Setting up working directory {}', p.working_dir)
    if not Path(p.working_dir).is_dir():
        actions.append(f'create-dir {p.working_dir}')
    if not dry_run:
        ds.prepare_home(p.working_dir, p.user, p.group)
    return actions
