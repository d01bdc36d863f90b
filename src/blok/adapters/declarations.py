"""Read parser-output JSON documents into raw declarations."""

from __future__ import annotations

import json
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from blok.domain.declarations import RawDeclaration
from blok.domain.reconciliation import MalformedDeclarationError, ReconciliationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

log = getLogger(__name__)


class DeclarationFileError(ReconciliationError):
    """A declaration file could not be read or does not hold declarations."""


def load_declarations(paths: Iterable[Path | str]) -> dict[str, list[RawDeclaration]]:
    """Load every declaration under ``paths``, grouped by identifier.

    A path is a JSON file holding one declaration object or a list of them, or
    a directory searched recursively for ``*.json`` files.
    """

    grouped: dict[str, list[RawDeclaration]] = {}
    files = 0
    for file_path in _expand(paths):
        files += 1
        for declaration in _read_file(file_path):
            grouped.setdefault(declaration.identifier, []).append(declaration)
    log.info(
        "Loaded %d declarations for %d identifiers from %d file(s)",
        sum(len(entries) for entries in grouped.values()),
        len(grouped),
        files,
    )
    return grouped


def _expand(paths: Iterable[Path | str]) -> Iterator[Path]:
    for entry in paths:
        path = Path(entry)
        if path.is_dir():
            yield from sorted(path.rglob("*.json"))
        elif path.exists():
            yield path
        else:
            raise DeclarationFileError(f"Declaration path does not exist: {path}")


def _read_file(path: Path) -> list[RawDeclaration]:
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DeclarationFileError(f"Cannot read declarations from {path}: {exc}") from exc

    items = document if isinstance(document, list) else [document]
    declarations: list[RawDeclaration] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise DeclarationFileError(f"{path}[{index}] is not a JSON object")
        try:
            declarations.append(RawDeclaration.from_mapping(item, source=f"{path}[{index}]"))
        except MalformedDeclarationError as exc:
            raise DeclarationFileError(str(exc)) from exc
    return declarations
