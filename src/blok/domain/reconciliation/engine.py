"""Orchestrator for the reconciliation subsystem.

The engine composes stage interfaces but does not prescribe concrete adapters.
Each command (diff, plan, sync, apply) runs a prefix of the same pipeline:
fetch -> build -> diff -> plan -> execute.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .build import build_type_graph
from .diff import diff_graphs
from .execute import Executor
from .plan import compile_plan
from .snapshot import fetch_snapshot

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from blok.domain.declarations import RawDeclaration

    from .build import BuildResult, BuildTypeGraph
    from .changes import ChangeSet
    from .context import ReconcileContext
    from .diff import DiffTypeGraphs
    from .execute import Report
    from .graph import TypeGraph
    from .plan import CompilePlan, Plan
    from .snapshot import FetchSnapshot


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class DiffOutcome:
    build: BuildResult
    remote: TypeGraph
    change_set: ChangeSet


@dataclass(frozen=True, slots=True, kw_only=True)
class PlanOutcome:
    build: BuildResult
    change_set: ChangeSet
    plan: Plan


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncOutcome:
    build: BuildResult
    change_set: ChangeSet
    plan: Plan
    report: Report

    @property
    def exit_code(self) -> int:
        """Report exit code; a clean run with build errors still counts as partial."""
        if self.build.errors and self.report.exit_code == 0:
            return 3
        return self.report.exit_code


@dataclass(slots=True)
class ReconciliationEngine:
    """Run the reconciliation stages for one command."""

    build_graph: BuildTypeGraph = build_type_graph
    fetch_remote: FetchSnapshot = fetch_snapshot
    diff_graphs: DiffTypeGraphs = diff_graphs
    compile_plan: CompilePlan = compile_plan

    async def diff(
        self,
        declarations: Mapping[str, Sequence[RawDeclaration]],
        *,
        context: ReconcileContext,
    ) -> DiffOutcome:
        """Build the local graph and classify it against the registry. Read-only."""

        remote = await self.fetch_remote(context.transport)
        build = self.build_graph(declarations, overrides=context.overrides, known=remote)
        skip = set(build.failed)
        if context.managed_prefixes:
            prefixes = context.managed_prefixes
        else:
            prefixes = ()
            skip |= set(remote.identifiers()) - set(build.graph.identifiers())
            log.debug("No managed prefixes configured; remote-only types are left alone")
        change_set = self.diff_graphs(
            build.graph,
            remote,
            managed_prefixes=prefixes,
            skip=skip,
        )
        return DiffOutcome(build=build, remote=remote, change_set=change_set)

    async def plan(
        self,
        declarations: Mapping[str, Sequence[RawDeclaration]],
        *,
        context: ReconcileContext,
    ) -> PlanOutcome:
        diffed = await self.diff(declarations, context=context)
        plan = self.compile_plan(diffed.change_set)
        return PlanOutcome(build=diffed.build, change_set=diffed.change_set, plan=plan)

    async def sync(
        self,
        declarations: Mapping[str, Sequence[RawDeclaration]],
        *,
        context: ReconcileContext,
    ) -> SyncOutcome:
        planned = await self.plan(declarations, context=context)
        report = await self.apply(planned.plan, context=context)
        report = replace(report, change_set=planned.change_set)
        return SyncOutcome(
            build=planned.build,
            change_set=planned.change_set,
            plan=planned.plan,
            report=report,
        )

    async def apply(self, plan: Plan, *, context: ReconcileContext) -> Report:
        executor = Executor(
            context.transport,
            max_workers=context.max_workers,
            timeout=context.timeout_seconds,
        )
        report = await executor.run(plan, cancel=context.cancel)
        if context.dry_run:
            report = replace(report, dry_run=True)
        return report
