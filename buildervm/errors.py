"""Project-specific exception types."""

from __future__ import annotations


class BuilderVMError(RuntimeError):
    """Base error for domain-level buildervm failures."""


class PrincipalMismatchError(BuilderVMError):
    """Raised when an existing host account has an unexpected numeric id."""


class KeyGenerationError(BuilderVMError):
    """Raised when ssh-keygen fails to produce an identity keypair."""


class VMListError(BuilderVMError):
    """Raised when the hypervisor cannot list its instances."""


class VMCreateError(BuilderVMError):
    """Raised when the hypervisor rejects a VM definition."""


class ChannelMissingError(BuilderVMError):
    """Raised when the transfer channel does not hold the expected keys."""


class InstallerStepError(BuilderVMError):
    """Raised when a guest installer step fails; sshd must stay blocked."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f'Guest key installer failed at step {step!r}: {cause}')


class UntrustedHostError(BuilderVMError):
    """Raised when a connection is attempted before the alias is trusted."""
