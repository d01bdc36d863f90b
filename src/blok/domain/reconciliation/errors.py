"""Error taxonomy for reconciliation.

- resolution errors are collected per type by the graph builder, never raised
  out of it
- planning errors are raised before any remote write happens
- registry errors are raised by transports and turned into operation outcomes
  by the executor
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from blok.domain.model import TypeKind, TypeRef, VersionedUrl


class ReconciliationError(RuntimeError):
    """Base class for every reconciliation failure."""


class ResolutionError(ReconciliationError):
    """A single type could not be resolved into the type graph."""

    def __init__(self, message: str, *, identifier: str, version: int | None = None) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.version = version


class MalformedDeclarationError(ResolutionError):
    """A raw declaration body does not match its kind's shape."""


class VersionSequenceError(ResolutionError):
    def __init__(self, *, identifier: str, version: int, expected: int) -> None:
        super().__init__(
            f"{identifier} declares version {version}, expected version {expected}",
            identifier=identifier,
            version=version,
        )
        self.expected = expected


class UnresolvedReferenceError(ResolutionError):
    def __init__(
        self,
        *,
        source: VersionedUrl,
        missing: TypeRef,
        expected_kind: TypeKind | None = None,
        reason: str = "not found",
    ) -> None:
        detail = f"{reason} (expected {expected_kind})" if expected_kind else reason
        super().__init__(
            f"{source} references {missing}: {detail}",
            identifier=source.base_url,
            version=source.version,
        )
        self.source = source
        self.missing = missing
        self.reason = reason


class CompositionCycleError(ResolutionError):
    def __init__(self, *, source: VersionedUrl, cycle_path: Sequence[VersionedUrl]) -> None:
        path = " -> ".join(str(url) for url in cycle_path)
        super().__init__(
            f"{source} is part of a composition cycle: {path}",
            identifier=source.base_url,
            version=source.version,
        )
        self.source = source
        self.cycle_path = tuple(cycle_path)


class UnsatisfiableDependencyError(ReconciliationError):
    def __init__(self, cycle: Sequence[VersionedUrl]) -> None:
        path = " -> ".join(str(url) for url in cycle)
        super().__init__(f"Plan has an unsatisfiable dependency cycle: {path}")
        self.cycle = tuple(cycle)


class SnapshotIntegrityError(ReconciliationError):
    """The registry returned two different bodies for one versioned URL."""


class PlanFileError(ReconciliationError):
    """A stored plan could not be read or is internally inconsistent."""


class RegistryError(ReconciliationError):
    def __init__(self, message: str, *, url: VersionedUrl | None = None) -> None:
        super().__init__(message)
        self.url = url


class TypeAlreadyExistsError(RegistryError):
    """The registry already holds this versioned URL."""


class RegistryRejectedError(RegistryError):
    def __init__(
        self,
        message: str,
        *,
        url: VersionedUrl | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class RegistryUnavailableError(RegistryError):
    """Network failure, timeout or server error after retries."""
