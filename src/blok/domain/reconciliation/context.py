"""Per-invocation state shared by the reconciliation stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping

    from blok.domain.declarations import RawDeclaration
    from blok.domain.ports.registry import RegistryTransport


@dataclass(slots=True, kw_only=True)
class ReconcileContext:
    """Everything one command needs besides its declarations.

    ``managed_prefixes`` scopes removals: remote-only types outside them are
    never archived. With no prefixes, remote-only types are left alone
    entirely. ``dry_run`` only affects reporting; callers swap in a recording
    transport themselves.
    """

    transport: RegistryTransport
    overrides: Mapping[str, RawDeclaration] = field(default_factory=dict["str", "RawDeclaration"])
    managed_prefixes: tuple[str, ...] = ()
    max_workers: int = 4
    timeout_seconds: float | None = None
    dry_run: bool = False
    cancel: asyncio.Event | None = None
