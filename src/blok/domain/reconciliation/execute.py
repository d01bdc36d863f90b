"""Executor: apply a plan against a registry transport.

Responsibilities of this stage:
- dispatch operations to a bounded pool of asyncio workers as soon as every
  prerequisite has succeeded
- serialise writes to the same identifier
- turn registry errors into per-operation outcomes; a failure skips its
  transitive dependents and leaves independent operations running
- stop dispatching on cancellation or timeout, letting in-flight writes finish
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import RegistryError, TypeAlreadyExistsError
from .plan import OperationKind, Phase

if TYPE_CHECKING:
    from blok.domain.ports.registry import RegistryTransport

    from .changes import ChangeSet
    from .plan import Operation, Plan


log = logging.getLogger(__name__)

CANCELLED = "cancelled"


class OperationStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True, kw_only=True)
class OperationOutcome:
    op_id: str
    status: OperationStatus
    reason: str | None = None
    blocked_by: str | None = None
    noop: bool = False


class RunStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    TOTAL_FAILURE = "total_failure"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    RunStatus.SUCCESS: 0,
    RunStatus.PARTIAL_FAILURE: 3,
    RunStatus.TOTAL_FAILURE: 1,
}


@dataclass(frozen=True, slots=True, kw_only=True)
class Report:
    """Outcome of one run, in plan order."""

    outcomes: tuple[OperationOutcome, ...] = ()
    plan: Plan | None = None
    change_set: ChangeSet | None = None
    dry_run: bool = False

    def counts(self) -> dict[OperationStatus, int]:
        counter = Counter(outcome.status for outcome in self.outcomes)
        return {status: counter.get(status, 0) for status in OperationStatus}

    def with_status(self, status: OperationStatus) -> tuple[OperationOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.status is status)

    def outcome(self, op_id: str) -> OperationOutcome:
        for outcome in self.outcomes:
            if outcome.op_id == op_id:
                return outcome
        raise KeyError(op_id)

    @property
    def status(self) -> RunStatus:
        counts = self.counts()
        if not counts[OperationStatus.FAILED] and not counts[OperationStatus.SKIPPED]:
            return RunStatus.SUCCESS
        if counts[OperationStatus.SUCCEEDED]:
            return RunStatus.PARTIAL_FAILURE
        return RunStatus.TOTAL_FAILURE

    @property
    def exit_code(self) -> int:
        return self.status.exit_code


@dataclass(slots=True)
class Executor:
    transport: RegistryTransport
    max_workers: int = 4
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    async def run(self, plan: Plan, *, cancel: asyncio.Event | None = None) -> Report:
        run = _Run(plan=plan)
        if not run.finished():
            await self._dispatch(run, cancel)
        for operation in plan:
            if operation.op_id not in run.outcomes:
                run.outcomes[operation.op_id] = OperationOutcome(
                    op_id=operation.op_id, status=OperationStatus.SKIPPED, reason=CANCELLED
                )
        report = Report(
            outcomes=tuple(run.outcomes[operation.op_id] for operation in plan),
            plan=plan,
        )
        log.info(
            "Run finished with status %s: %s",
            report.status,
            ", ".join(f"{status}={count}" for status, count in report.counts().items()),
        )
        return report

    async def _dispatch(self, run: _Run, cancel: asyncio.Event | None) -> None:
        locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def worker() -> None:
            while True:
                operation = await run.queue.get()
                if operation is None:
                    return
                if cancel is not None and cancel.is_set():
                    run.stopped.set()
                if run.stopped.is_set():
                    continue
                run.in_flight += 1
                try:
                    async with locks[operation.identifier]:
                        outcome = await self._perform(operation)
                finally:
                    run.in_flight -= 1
                run.record(outcome)

        workers = [asyncio.create_task(worker()) for _ in range(self.max_workers)]
        waiters = {asyncio.create_task(run.done.wait())}
        if cancel is not None:
            waiters.add(asyncio.create_task(cancel.wait()))
        try:
            await asyncio.wait(waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)
            if not run.done.is_set():
                reason = "cancel requested" if cancel is not None and cancel.is_set() else "timeout"
                log.warning("Stopping dispatch (%s); waiting for in-flight operations", reason)
                run.stopped.set()
        finally:
            for waiter in waiters:
                waiter.cancel()
            for _ in workers:
                run.queue.put_nowait(None)
            await asyncio.gather(*workers)

    async def _perform(self, operation: Operation) -> OperationOutcome:
        try:
            if operation.kind is OperationKind.ARCHIVE:
                await self.transport.archive_type(operation.url, operation.type_kind)
                return _succeeded(operation)
            if operation.phase is not Phase.ATTACH and await self.transport.exists(
                operation.url, operation.type_kind
            ):
                log.info("%s already exists; nothing to do", operation.url)
                return _succeeded(operation, noop=True)
            if operation.payload is None:
                return _failed(operation, "operation has no payload")
            if operation.kind is OperationKind.CREATE:
                await self.transport.create_type(operation.payload)
            else:
                await self.transport.update_type(operation.payload)
            return _succeeded(operation)
        except TypeAlreadyExistsError as exc:
            if operation.phase is Phase.ATTACH:
                return _failed(operation, str(exc))
            log.info("%s already exists; nothing to do", operation.url)
            return _succeeded(operation, noop=True)
        except RegistryError as exc:
            log.warning("Operation %s failed: %s", operation.op_id, exc)
            return _failed(operation, str(exc))
        except Exception as exc:  # noqa: BLE001
            log.exception("Operation %s failed unexpectedly", operation.op_id)
            return _failed(operation, f"unexpected error: {exc}")


def execute_plan(
    plan: Plan,
    transport: RegistryTransport,
    *,
    max_workers: int = 4,
    timeout: float | None = None,
    cancel: asyncio.Event | None = None,
) -> Report:
    """Synchronous wrapper around ``Executor.run``."""
    executor = Executor(transport, max_workers=max_workers, timeout=timeout)
    return asyncio.run(executor.run(plan, cancel=cancel))


@dataclass(slots=True)
class _Run:
    plan: Plan
    outcomes: dict[str, OperationOutcome] = field(default_factory=dict[str, OperationOutcome])
    waiting: dict[str, int] = field(default_factory=dict[str, int])
    queue: asyncio.Queue[Operation | None] = field(default_factory=asyncio.Queue)
    done: asyncio.Event = field(default_factory=asyncio.Event)
    stopped: asyncio.Event = field(default_factory=asyncio.Event)
    in_flight: int = 0

    def __post_init__(self) -> None:
        for operation in self.plan:
            self.waiting[operation.op_id] = len(operation.depends_on)
            if not operation.depends_on:
                self.queue.put_nowait(operation)

    def finished(self) -> bool:
        return len(self.outcomes) == len(self.plan)

    def record(self, outcome: OperationOutcome) -> None:
        self.outcomes[outcome.op_id] = outcome
        if outcome.status is OperationStatus.SUCCEEDED:
            for dependent in self.plan.direct_dependents(outcome.op_id):
                self.waiting[dependent] -= 1
                if not self.waiting[dependent] and dependent not in self.outcomes:
                    self.queue.put_nowait(self.plan.operation(dependent))
        else:
            for dependent in sorted(self.plan.dependents_of(outcome.op_id)):
                if dependent not in self.outcomes:
                    self.outcomes[dependent] = OperationOutcome(
                        op_id=dependent,
                        status=OperationStatus.SKIPPED,
                        reason=f"prerequisite {outcome.op_id} did not succeed",
                        blocked_by=outcome.op_id,
                    )
        if self.finished() or (self.queue.empty() and not self.in_flight):
            self.done.set()


def _succeeded(operation: Operation, *, noop: bool = False) -> OperationOutcome:
    log.info("Operation %s succeeded", operation.op_id)
    return OperationOutcome(op_id=operation.op_id, status=OperationStatus.SUCCEEDED, noop=noop)


def _failed(operation: Operation, reason: str) -> OperationOutcome:
    return OperationOutcome(op_id=operation.op_id, status=OperationStatus.FAILED, reason=reason)
