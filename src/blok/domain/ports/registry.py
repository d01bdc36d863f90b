"""Port for talking to an ontology type registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from blok.domain.reconciliation.errors import (
    RegistryError,
    RegistryRejectedError,
    RegistryUnavailableError,
    TypeAlreadyExistsError,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from blok.domain.model import OntologyType, TypeKind, VersionedUrl


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Acknowledgement of one registry write."""

    url: VersionedUrl
    created: bool = True
    detail: str | None = None


@runtime_checkable
class RegistryTransport(Protocol):
    """Async capability set the fetcher and executor need from a registry.

    Writes raise ``TypeAlreadyExistsError`` when the versioned URL is already
    taken, ``RegistryRejectedError`` for validation failures and
    ``RegistryUnavailableError`` when the registry cannot be reached.
    """

    async def fetch_snapshot(self, identifiers: Sequence[str] | None) -> Sequence[OntologyType]:
        ...

    async def exists(self, url: VersionedUrl, kind: TypeKind) -> bool: ...

    async def create_type(self, node: OntologyType) -> WriteResult: ...

    async def update_type(self, node: OntologyType) -> WriteResult: ...

    async def archive_type(self, url: VersionedUrl, kind: TypeKind) -> WriteResult: ...


__all__ = [
    "RegistryError",
    "RegistryRejectedError",
    "RegistryTransport",
    "RegistryUnavailableError",
    "TypeAlreadyExistsError",
    "WriteResult",
]
