"""VM operation exports for the lifecycle controller and hypervisor wrapper."""

from __future__ import annotations

from .hypervisor import LimaHypervisor
from .lifecycle import LifecycleController, VMState

__all__ = [
    'LifecycleController',
    'LimaHypervisor',
    'VMState',
]
