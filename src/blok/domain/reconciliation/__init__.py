"""Reconciliation core: bring a remote ontology registry in line with local declarations.

Layered flow:
1) fetch the remote snapshot into a type graph
2) build the local type graph from raw declarations
3) diff the two graphs into a change set
4) compile the change set into a dependency-ordered plan
5) execute the plan against the registry

Stage modules (``build``, ``snapshot``, ``diff``, ``plan``, ``execute``) and the
``engine`` that composes them are imported from their modules directly; this
package only re-exports the shared data types and errors.
"""

from __future__ import annotations

from .changes import ChangeKind, ChangeSet, MembershipDelta, TypeChange
from .errors import (
    CompositionCycleError,
    MalformedDeclarationError,
    PlanFileError,
    ReconciliationError,
    RegistryError,
    RegistryRejectedError,
    RegistryUnavailableError,
    ResolutionError,
    SnapshotIntegrityError,
    TypeAlreadyExistsError,
    UnresolvedReferenceError,
    UnsatisfiableDependencyError,
    VersionSequenceError,
)
from .graph import TypeGraph
from .plan import Operation, OperationKind, Phase, Plan

__all__ = [
    "ChangeKind",
    "ChangeSet",
    "CompositionCycleError",
    "MalformedDeclarationError",
    "MembershipDelta",
    "Operation",
    "OperationKind",
    "Phase",
    "Plan",
    "PlanFileError",
    "ReconciliationError",
    "RegistryError",
    "RegistryRejectedError",
    "RegistryUnavailableError",
    "ResolutionError",
    "SnapshotIntegrityError",
    "TypeAlreadyExistsError",
    "TypeChange",
    "TypeGraph",
    "UnresolvedReferenceError",
    "UnsatisfiableDependencyError",
    "VersionSequenceError",
]
