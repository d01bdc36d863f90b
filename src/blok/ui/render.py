"""Plain-text rendering of change sets, plans and run reports."""

from __future__ import annotations

from typing import TYPE_CHECKING

from blok.domain.reconciliation import ChangeKind, Phase

if TYPE_CHECKING:
    from collections.abc import Sequence

    from blok.domain.reconciliation import ChangeSet, Plan, ResolutionError, TypeChange
    from blok.domain.reconciliation.execute import Report

_CHANGE_MARKERS = {
    ChangeKind.CREATE: "+",
    ChangeKind.UPDATE: "~",
    ChangeKind.REMOVE: "-",
    ChangeKind.UNCHANGED: "=",
}


def render_build_errors(errors: Sequence[ResolutionError]) -> str:
    if not errors:
        return ""
    lines = [f"{len(errors)} type(s) failed to build:"]
    lines.extend(f"  ! {type(error).__name__}: {error}" for error in errors)
    return "\n".join(lines)


def render_change_set(change_set: ChangeSet, *, show_unchanged: bool = False) -> str:
    lines: list[str] = []
    for change in change_set:
        if change.kind is ChangeKind.UNCHANGED and not show_unchanged:
            continue
        lines.append(_change_line(change))
        for delta in change.deltas:
            lines.extend(f"      + {delta.field}: {member}" for member in delta.added)
            lines.extend(f"      - {delta.field}: {member}" for member in delta.removed)
    summary = change_set.summary()
    lines.append(
        "Changes: "
        + ", ".join(f"{count} {kind}" for kind, count in summary.items())
    )
    if change_set.is_empty:
        lines.append("Registry is up to date.")
    return "\n".join(lines)


def render_plan(plan: Plan) -> str:
    if plan.is_empty:
        return "Plan is empty."
    lines: list[str] = []
    for position, operation in enumerate(plan, start=1):
        phase = "" if operation.phase is Phase.SINGLE else f" ({operation.phase})"
        lines.append(
            f"{position:>3}. {operation.kind} {operation.type_kind} {operation.url}{phase}"
        )
        lines.extend(f"       after {dependency}" for dependency in operation.depends_on)
    counts = ", ".join(f"{count} {kind}" for kind, count in plan.counts().items())
    lines.append(f"Plan: {len(plan)} operations ({counts})")
    return "\n".join(lines)


def render_report(report: Report) -> str:
    lines: list[str] = []
    if report.dry_run:
        lines.append("Dry run: no changes were written.")
    for outcome in report.outcomes:
        detail = ""
        if outcome.noop:
            detail = " (already present)"
        elif outcome.reason:
            detail = f": {outcome.reason}"
        lines.append(f"  [{outcome.status}] {outcome.op_id}{detail}")
    counts = ", ".join(f"{count} {status}" for status, count in report.counts().items())
    lines.append(f"Result: {report.status} ({counts})")
    return "\n".join(lines)


def _change_line(change: TypeChange) -> str:
    marker = _CHANGE_MARKERS[change.kind]
    return f"  {marker} {change.kind:<9} {change.type_kind:<13} {change.url}"
