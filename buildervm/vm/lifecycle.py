"""VM lifecycle: existence check, first-time bootstrap, definition, and run.

State is re-derived from observable facts on every entry (does the instance
exist?) rather than remembered between runs. The supervisor restarts the
process after any VM exit and ``ensure_defined`` short-circuits once the
instance is defined.

The existence check and the create call are not atomic. At most one
controller per host is expected; a create that loses the race reports
"already exists" and is treated as success.
"""

from __future__ import annotations

import enum

from loguru import logger

from ..config import BuilderConfig
from ..descriptor import VMDescriptor, build_descriptor, write_descriptor
from ..keys import bootstrap
from ..layout import HostLayout
from ..state import CredentialStore
from .hypervisor import LimaHypervisor

log = logger


class VMState(enum.Enum):
    NOT_DEFINED = 'not-defined'
    STOPPED = 'stopped'
    RUNNING = 'running'


class LifecycleController:
    def __init__(
        self,
        cfg: BuilderConfig,
        *,
        hypervisor: LimaHypervisor | None = None,
        store: CredentialStore | None = None,
    ):
        self.cfg = cfg.expanded_paths()
        self.store = store or CredentialStore(HostLayout.from_config(self.cfg))
        self.hypervisor = hypervisor or LimaHypervisor(cwd=self.store.root)
        self.state = VMState.NOT_DEFINED

    @property
    def name(self) -> str:
        return self.cfg.vm.instance_name

    @property
    def descriptor(self) -> VMDescriptor:
        return build_descriptor(self.cfg, self.store.layout)

    def is_defined(self) -> bool:
        return self.hypervisor.exists(self.name)

    def refresh(self) -> VMState:
        if self.state is not VMState.RUNNING:
            self.state = (
                VMState.STOPPED if self.is_defined() else VMState.NOT_DEFINED
            )
        return self.state

    def ensure_defined(self, *, dry_run: bool = False) -> bool:
        """Bootstrap and define the VM if absent. Returns True if created."""
        if self.is_defined():
            log.info('VM already defined: {}', self.name)
            self.state = VMState.STOPPED
            return False
        descriptor = self.descriptor
        if not descriptor.images:
            raise RuntimeError(
                'vm.image is empty; point it at the guest disk image before '
                'defining the VM.'
            )
        descriptor_file = self.store.layout.descriptor_file(self.name)
        if dry_run:
            log.info(
                'DRYRUN: ssh-keygen x2, stage {}, write {}, limactl create --name={} {}',
                self.store.layout.channel_dir,
                self.store.layout.known_hosts,
                self.name,
                descriptor_file,
            )
            return False
        # Order matters: the trust entry exists before the VM can be reached.
        bootstrap(self.cfg, self.store)
        write_descriptor(descriptor, descriptor_file)
        created = self.hypervisor.create(self.name, descriptor_file)
        self.state = VMState.STOPPED
        if created:
            log.info('VM created: {}', self.name)
        else:
            log.warning(
                'VM {} was defined concurrently; the trust entry for {} now pins '
                'a key the guest never received. Delete the VM to re-bootstrap.',
                self.name,
                self.cfg.host_key_alias,
            )
        return created

    def run(self) -> int:
        """Run the VM in the foreground until it exits for any reason."""
        log.info('Starting VM {} in the foreground', self.name)
        self.state = VMState.RUNNING
        try:
            code = self.hypervisor.start_foreground(
                self.name, debug=bool(self.cfg.vm.debug)
            )
        finally:
            self.state = VMState.STOPPED
        # Shutdown, crash, and host sleep all end up here; recovery is the
        # supervisor's restart, not ours.
        log.info('VM {} exited with code {}', self.name, code)
        return code

    def serve(self) -> int:
        self.store.secure_root()
        self.ensure_defined()
        return self.run()
