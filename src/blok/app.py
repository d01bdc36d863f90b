"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import signal
from contextlib import asynccontextmanager, suppress
from logging import getLogger
from typing import TYPE_CHECKING

from blok.adapters.declarations import DeclarationFileError, load_declarations
from blok.adapters.memory import DryRunRegistry
from blok.adapters.plan_file import read_plan, write_plan
from blok.adapters.registry import HttpRegistryTransport
from blok.config import get_reconcile_settings, get_registry_config
from blok.domain.reconciliation.context import ReconcileContext
from blok.domain.reconciliation.engine import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

    from blok.config import ReconcileSettings
    from blok.domain.declarations import RawDeclaration
    from blok.domain.ports.registry import RegistryTransport
    from blok.domain.reconciliation.engine import DiffOutcome, PlanOutcome, SyncOutcome
    from blok.domain.reconciliation.execute import Report

type PathLike = Path | str


log = getLogger(__name__)


def diff_ontology(
    paths: Iterable[PathLike],
    *,
    overrides: Iterable[PathLike] = (),
    managed_prefixes: Iterable[str] | None = None,
    transport: RegistryTransport | None = None,
    settings: ReconcileSettings | None = None,
    engine: ReconciliationEngine | None = None,
) -> DiffOutcome:
    """Classify local declarations against the registry without writing."""

    declarations = load_declarations(paths)
    override_map = load_overrides(overrides)
    effective_engine = engine or ReconciliationEngine()

    async def run() -> DiffOutcome:
        async with _open_transport(transport) as active:
            context = _context(active, settings, override_map, managed_prefixes)
            return await effective_engine.diff(declarations, context=context)

    outcome = asyncio.run(run())
    log.info(
        "Diff finished: %s",
        ", ".join(f"{kind}={count}" for kind, count in outcome.change_set.summary().items()),
    )
    return outcome


def plan_ontology(
    paths: Iterable[PathLike],
    *,
    out: PathLike | None = None,
    overrides: Iterable[PathLike] = (),
    managed_prefixes: Iterable[str] | None = None,
    transport: RegistryTransport | None = None,
    settings: ReconcileSettings | None = None,
    engine: ReconciliationEngine | None = None,
) -> PlanOutcome:
    """Diff, then compile the change set into a plan; optionally write a plan file."""

    declarations = load_declarations(paths)
    override_map = load_overrides(overrides)
    effective_engine = engine or ReconciliationEngine()

    async def run() -> PlanOutcome:
        async with _open_transport(transport) as active:
            context = _context(active, settings, override_map, managed_prefixes)
            return await effective_engine.plan(declarations, context=context)

    outcome = asyncio.run(run())
    if out is not None:
        write_plan(outcome.plan, out)
    return outcome


def sync_ontology(
    paths: Iterable[PathLike],
    *,
    overrides: Iterable[PathLike] = (),
    managed_prefixes: Iterable[str] | None = None,
    dry_run: bool = False,
    transport: RegistryTransport | None = None,
    settings: ReconcileSettings | None = None,
    engine: ReconciliationEngine | None = None,
) -> SyncOutcome:
    """Diff, plan and execute against the registry."""

    declarations = load_declarations(paths)
    override_map = load_overrides(overrides)
    effective_engine = engine or ReconciliationEngine()

    async def run() -> SyncOutcome:
        async with _open_transport(transport) as active, _interruptible() as cancel:
            context = _context(
                DryRunRegistry(active) if dry_run else active,
                settings,
                override_map,
                managed_prefixes,
                dry_run=dry_run,
                cancel=cancel,
            )
            return await effective_engine.sync(declarations, context=context)

    log.info("Starting sync%s", " (dry run)" if dry_run else "")
    outcome = asyncio.run(run())
    log.info("Sync finished with status %s", outcome.report.status)
    return outcome


def apply_plan(
    plan_path: PathLike,
    *,
    dry_run: bool = False,
    transport: RegistryTransport | None = None,
    settings: ReconcileSettings | None = None,
    engine: ReconciliationEngine | None = None,
) -> Report:
    """Execute a previously written plan file."""

    plan = read_plan(plan_path)
    effective_engine = engine or ReconciliationEngine()

    async def run() -> Report:
        async with _open_transport(transport) as active, _interruptible() as cancel:
            context = _context(
                DryRunRegistry(active) if dry_run else active,
                settings,
                {},
                None,
                dry_run=dry_run,
                cancel=cancel,
            )
            return await effective_engine.apply(plan, context=context)

    report = asyncio.run(run())
    log.info("Apply finished with status %s", report.status)
    return report


def load_overrides(paths: Iterable[PathLike]) -> dict[str, RawDeclaration]:
    """Load override declarations; each identifier may be overridden once."""

    path_list = list(paths)
    if not path_list:
        return {}
    overrides: dict[str, RawDeclaration] = {}
    for identifier, entries in load_declarations(path_list).items():
        if len(entries) > 1:
            raise DeclarationFileError(f"{identifier} is overridden more than once")
        overrides[identifier] = entries[0]
    return overrides


def _context(
    transport: RegistryTransport,
    settings: ReconcileSettings | None,
    overrides: dict[str, RawDeclaration],
    managed_prefixes: Iterable[str] | None,
    *,
    dry_run: bool = False,
    cancel: asyncio.Event | None = None,
) -> ReconcileContext:
    effective = settings or get_reconcile_settings()
    prefixes = effective.managed_prefixes if managed_prefixes is None else tuple(managed_prefixes)
    return ReconcileContext(
        transport=transport,
        overrides=overrides,
        managed_prefixes=prefixes,
        max_workers=effective.max_workers,
        timeout_seconds=effective.timeout_seconds,
        dry_run=dry_run,
        cancel=cancel,
    )


@asynccontextmanager
async def _open_transport(transport: RegistryTransport | None) -> AsyncIterator[RegistryTransport]:
    if transport is not None:
        yield transport
        return
    async with HttpRegistryTransport(config=get_registry_config()) as http_transport:
        yield http_transport


@asynccontextmanager
async def _interruptible() -> AsyncIterator[asyncio.Event]:
    """Set the yielded event on SIGINT so the executor stops dispatching.

    The SIGINT handler installed before entering is put back on exit.
    """

    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    previous = signal.getsignal(signal.SIGINT)
    installed = False
    with suppress(NotImplementedError, RuntimeError, ValueError):
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        installed = True
    try:
        yield cancel
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
            if previous is not None:
                signal.signal(signal.SIGINT, previous)
