"""Domain port definitions for adapters."""

from __future__ import annotations

from .registry import RegistryTransport, WriteResult

__all__ = [
    "RegistryTransport",
    "WriteResult",
]
