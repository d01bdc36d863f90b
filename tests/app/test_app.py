from __future__ import annotations

import json
import signal
from typing import TYPE_CHECKING

import pytest

from blok.adapters.declarations import DeclarationFileError
from blok.adapters.memory import InMemoryRegistry
from blok.app import apply_plan, diff_ontology, load_overrides, plan_ontology, sync_ontology
from blok.config import ReconcileSettings
from blok.domain.model import VersionedUrl
from blok.domain.reconciliation import ChangeKind
from blok.domain.reconciliation.execute import RunStatus
from tests.support.ontology import (
    EMAIL,
    NAME,
    ROOT,
    TEXT,
    contact_ontology,
    data_type,
    nodes,
    property_type,
    ref,
)

if TYPE_CHECKING:
    from pathlib import Path
    from types import FrameType

SETTINGS = ReconcileSettings(max_workers=2)


@pytest.fixture
def declarations(tmp_path: Path) -> Path:
    path = tmp_path / "ontology.json"
    payload = [decl.to_mapping() for group in contact_ontology().values() for decl in group]
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_diff_reports_creates_without_writing(
    declarations: Path,
    registry: InMemoryRegistry,
) -> None:
    outcome = diff_ontology([declarations], transport=registry, settings=SETTINGS)

    assert outcome.change_set.summary()[ChangeKind.CREATE] == 3
    assert registry.writes() == []


def test_plan_file_can_be_applied_later(
    declarations: Path,
    registry: InMemoryRegistry,
    tmp_path: Path,
) -> None:
    plan_path = tmp_path / "plan.json"

    planned = plan_ontology([declarations], out=plan_path, transport=registry, settings=SETTINGS)
    report = apply_plan(plan_path, transport=registry, settings=SETTINGS)

    assert len(planned.plan) == 3
    assert report.status is RunStatus.SUCCESS
    assert registry.get(VersionedUrl.of(EMAIL, 1)) is not None


def test_sync_dry_run_leaves_registry_untouched(
    declarations: Path,
    registry: InMemoryRegistry,
) -> None:
    outcome = sync_ontology([declarations], dry_run=True, transport=registry, settings=SETTINGS)

    assert outcome.report.dry_run
    assert outcome.report.status is RunStatus.SUCCESS
    assert registry.nodes() == []


def test_sync_archives_within_explicit_prefixes(declarations: Path) -> None:
    (legacy,) = nodes(data_type(f"{ROOT}data-type/legacy/"))
    registry = InMemoryRegistry([legacy])

    outcome = sync_ontology(
        [declarations],
        managed_prefixes=[ROOT],
        transport=registry,
        settings=SETTINGS,
    )

    assert outcome.exit_code == 0
    archived = registry.get(legacy.url)
    assert archived is not None
    assert archived.archived


def test_overrides_are_applied(
    declarations: Path,
    registry: InMemoryRegistry,
    tmp_path: Path,
) -> None:
    override = tmp_path / "override.json"
    override.write_text(
        json.dumps(data_type(TEXT, primitive="number").to_mapping()), encoding="utf-8"
    )

    outcome = plan_ontology(
        [declarations], overrides=[override], transport=registry, settings=SETTINGS
    )

    text = outcome.build.graph.latest(TEXT)
    assert text is not None
    assert str(text.content()) == "number"


def test_overriding_an_identifier_twice_is_rejected(tmp_path: Path) -> None:
    override = tmp_path / "override.json"
    override.write_text(
        json.dumps(
            [
                property_type(NAME, one_of=[ref(TEXT)]).to_mapping(),
                property_type(NAME, 2, one_of=[ref(TEXT)]).to_mapping(),
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(DeclarationFileError, match="overridden more than once"):
        load_overrides([override])

    assert load_overrides([]) == {}


def test_sync_puts_back_the_previous_sigint_handler(
    declarations: Path,
    registry: InMemoryRegistry,
) -> None:
    def on_interrupt(signum: int, frame: FrameType | None) -> None:
        raise SystemExit(130)

    previous = signal.signal(signal.SIGINT, on_interrupt)
    try:
        outcome = sync_ontology([declarations], transport=registry, settings=SETTINGS)
        restored = signal.getsignal(signal.SIGINT)
    finally:
        signal.signal(signal.SIGINT, previous)

    assert outcome.report.status is RunStatus.SUCCESS
    assert restored is on_interrupt
