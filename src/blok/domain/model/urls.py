"""Identifiers: base URLs and the versioned URLs derived from them.

Block Protocol identifies a type by its *base URL* (for example
``https://blockprotocol.org/@blockprotocol/types/data-type/text/``) and a
published revision by ``<base url>v/<version>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

_VERSION_MARKER: Final[str] = "/v/"


class InvalidVersionedUrlError(ValueError):
    """Raised when a value is not a ``<base url>v/<version>`` URL."""


def normalize_base_url(identifier: str) -> str:
    """Return ``identifier`` with surrounding whitespace removed and a trailing slash."""

    stripped = identifier.strip()
    if not stripped:
        raise InvalidVersionedUrlError("Identifier must not be blank")
    return stripped if stripped.endswith("/") else f"{stripped}/"


@dataclass(frozen=True, slots=True, order=True)
class VersionedUrl:
    base_url: str
    version: int

    def __post_init__(self) -> None:
        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise InvalidVersionedUrlError(f"Version must be an integer: {self.version!r}")
        if self.version < 1:
            raise InvalidVersionedUrlError(f"Version must be positive: {self.version}")
        if not self.base_url.endswith("/"):
            raise InvalidVersionedUrlError(f"Base URL must end with '/': {self.base_url}")

    def __str__(self) -> str:
        return f"{self.base_url}v/{self.version}"

    @classmethod
    def of(cls, identifier: str, version: int) -> VersionedUrl:
        return cls(base_url=normalize_base_url(identifier), version=version)

    @classmethod
    def parse(cls, value: str) -> VersionedUrl:
        head, marker, tail = value.strip().rpartition(_VERSION_MARKER)
        if not marker or not head or not (tail.isascii() and tail.isdigit()):
            raise InvalidVersionedUrlError(f"Not a versioned URL: {value!r}")
        return cls.of(head, int(tail))

    def next(self) -> VersionedUrl:
        return VersionedUrl(base_url=self.base_url, version=self.version + 1)
