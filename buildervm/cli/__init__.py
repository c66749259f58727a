"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import BuilderVMModalCLI, main

__all__ = ['BuilderVMModalCLI', 'main']
