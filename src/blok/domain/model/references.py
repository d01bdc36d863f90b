"""References between ontology types.

A reference names its target by identifier and a version range. The
"Versioned" wrapper of the authoring format becomes an open or closed range;
an exact reference is the degenerate range ``[n, n]``. Resolution (highest
satisfying version) happens against a type graph, never here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .urls import InvalidVersionedUrlError, VersionedUrl, normalize_base_url

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True, order=True)
class TypeRef:
    identifier: str
    min_version: int = 1
    max_version: int | None = None

    def __post_init__(self) -> None:
        if self.min_version < 1:
            raise InvalidVersionedUrlError(f"Minimum version must be positive: {self.min_version}")
        if self.max_version is not None and self.max_version < self.min_version:
            raise InvalidVersionedUrlError(
                f"Version range is empty: {self.min_version}..{self.max_version}"
            )

    def __str__(self) -> str:
        if self.is_exact:
            return str(self.url)
        upper = "" if self.max_version is None else str(self.max_version)
        return f"{self.identifier}v/[{self.min_version}..{upper}]"

    @classmethod
    def exact(cls, url: VersionedUrl) -> TypeRef:
        return cls(identifier=url.base_url, min_version=url.version, max_version=url.version)

    @classmethod
    def to(cls, identifier: str, version: int) -> TypeRef:
        return cls.exact(VersionedUrl.of(identifier, version))

    @classmethod
    def between(
        cls,
        identifier: str,
        min_version: int = 1,
        max_version: int | None = None,
    ) -> TypeRef:
        return cls(
            identifier=normalize_base_url(identifier),
            min_version=min_version,
            max_version=max_version,
        )

    @property
    def is_exact(self) -> bool:
        return self.max_version == self.min_version

    @property
    def url(self) -> VersionedUrl:
        """Versioned URL of an exact reference."""
        if not self.is_exact:
            raise InvalidVersionedUrlError(f"Reference is a range, not a version: {self}")
        return VersionedUrl(base_url=self.identifier, version=self.min_version)

    def satisfied_by(self, version: int) -> bool:
        if version < self.min_version:
            return False
        return self.max_version is None or version <= self.max_version

    def pick(self, versions: Iterable[int]) -> int | None:
        """Return the highest of ``versions`` inside the range."""
        candidates = [version for version in versions if self.satisfied_by(version)]
        return max(candidates) if candidates else None

    def pinned(self, version: int) -> TypeRef:
        return TypeRef(identifier=self.identifier, min_version=version, max_version=version)
