"""
Run controller — drives a flow's operations to completion.

The controller owns the operation list and a cursor. ``advance()``
evaluates operations in order until one needs the operator; the caller
then confirms it, runs it (synchronously or on the single worker
thread), and records completion before advancing again.

Flow:
    advance → [prompt] → confirm → launch/execute → complete → advance → …

A failed mutate halts the run for good. A failed check is just
information and the run continues. Declining a prompt aborts the run.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from crewcli.adapters.base import Adapter
from crewcli.core.engine.plan import PlanError, validate_operations
from crewcli.core.models.operation import (
    Operation,
    OperationState,
    OperationStateError,
)
from crewcli.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    RUNNING = "running"        # ready to advance
    PROMPT = "prompt"          # current operation awaits confirmation
    EXECUTING = "executing"    # current operation's process is in flight
    COMPLETED = "completed"    # every operation resolved
    FAILED = "failed"          # a mutate failed; the run cannot resume
    ABORTED = "aborted"        # the operator declined or cancelled

    @property
    def finished(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.ABORTED)


@dataclass
class RunReport:
    """Counts over a run's operations."""

    status: RunStatus
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    unstarted: int = 0

    def to_dict(self) -> dict:
        return {
            "status": str(self.status),
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "unstarted": self.unstarted,
        }


ProgressCallback = Callable[[Operation], None]


class RunController:
    """Sequencer for one run of a flow.

    Args:
        operations: Resolved operations, in run order.
        adapter: Runs every command of the run.
        on_progress: Called with an operation after each of its state changes.
        log: Logger for run diagnostics (defaults to this module's logger).
    """

    def __init__(
        self,
        operations: list[Operation],
        adapter: Adapter,
        *,
        on_progress: ProgressCallback | None = None,
        log: logging.Logger | None = None,
    ):
        errors = validate_operations(operations)
        if errors:
            raise PlanError("; ".join(errors))

        self._operations = operations
        self._adapter = adapter
        self._on_progress = on_progress
        self._log = log or logger

        self._cursor = 0
        self._view = 0
        self._status = RunStatus.RUNNING if operations else RunStatus.COMPLETED
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None
        self._pending: concurrent.futures.Future[Receipt] | None = None

    def __enter__(self) -> RunController:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Inspection ──────────────────────────────────────────────

    @property
    def operations(self) -> list[Operation]:
        return self._operations

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Operation | None:
        """The operation at the cursor, or None once the run completed."""
        if self._cursor < len(self._operations):
            return self._operations[self._cursor]
        return None

    @property
    def reached(self) -> int:
        """Highest index the review cursor may show."""
        return min(self._cursor, len(self._operations) - 1)

    @property
    def report(self) -> RunReport:
        report = RunReport(status=self._status, total=len(self._operations))
        for op in self._operations:
            if op.state == OperationState.SUCCEEDED:
                report.succeeded += 1
            elif op.state == OperationState.FAILED:
                report.failed += 1
            elif op.state == OperationState.SKIPPED:
                report.skipped += 1
            elif op.state == OperationState.UNSTARTED:
                report.unstarted += 1
        return report

    # ── Driving the run ─────────────────────────────────────────

    def advance(self) -> RunStatus:
        """Resolve operations until one needs the operator or the list ends.

        Returns the new run status. Does nothing once the run is
        finished, while a prompt is pending, or while a process runs.
        """
        if self._status != RunStatus.RUNNING:
            return self._status

        while self._cursor < len(self._operations):
            op = self._operations[self._cursor]

            if op.terminal:
                if op.is_mutate and op.state == OperationState.FAILED:
                    return self._halt(op)
                self._cursor += 1
                continue

            prerequisite = (
                self._operations[op.depends_on] if op.depends_on is not None else None
            )
            needs_operator = op.evaluate(prerequisite, self._adapter)
            self._notify(op)
            self._view = self._cursor

            if needs_operator:
                self._status = RunStatus.PROMPT
                self._log.info("Awaiting confirmation for operation %d", op.index)
                return self._status

            self._log.info("%s %d → %s", op.kind, op.index, op.state)

        self._status = RunStatus.COMPLETED
        self._view = max(self.reached, 0)
        self._log.info("Run completed: %s", self.report.to_dict())
        return self._status

    def confirm(self, yes: bool) -> RunStatus:
        """Answer the pending prompt.

        ``yes`` moves the current operation to EXECUTING; the caller then
        runs it with ``launch()`` or ``execute()``. ``no`` aborts the run.
        """
        op = self._require_status(RunStatus.PROMPT, "confirm")
        if op.confirm(yes):
            self._status = RunStatus.EXECUTING
            self._notify(op)
        else:
            self._status = RunStatus.ABORTED
            self._log.info("Operator declined operation %d; run aborted", op.index)
        return self._status

    def launch(self) -> concurrent.futures.Future[Receipt]:
        """Start the executing operation's process on the worker thread.

        The returned future resolves to the Receipt; completion is only
        recorded by ``poll()`` or ``wait()`` on the caller's thread.
        """
        op = self._require_status(RunStatus.EXECUTING, "launch")
        if self._pending is not None:
            raise OperationStateError(f"Operation {op.index} is already running")

        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="crewcli-run"
            )
        self._log.debug("Launching operation %d: %s", op.index, op.command)
        self._pending = self._executor.submit(
            self._adapter.run, op.command, op.operation_id
        )
        return self._pending

    def poll(self) -> bool:
        """Record completion if the launched process has finished.

        Returns True once the operation has been completed.
        """
        if self._pending is None or not self._pending.done():
            return False
        self._record_completion(self._pending.result())
        return True

    def wait(self) -> RunStatus:
        """Block until the launched process finishes and record it."""
        if self._pending is None:
            raise OperationStateError("No operation has been launched")
        return self._record_completion(self._pending.result())

    def execute(self) -> RunStatus:
        """Run the executing operation synchronously and record it."""
        op = self._require_idle("execute")
        return self._record_completion(self._adapter.run(op.command, op.operation_id))

    def complete(self, receipt: Receipt) -> RunStatus:
        """Record a receipt obtained outside the controller.

        Refused while a launched process is still running on the worker.
        """
        self._require_idle("complete")
        return self._record_completion(receipt)

    def cancel(self) -> bool:
        """Abort the run. Not allowed once a process is executing."""
        if self._status == RunStatus.EXECUTING:
            return False
        if not self._status.finished:
            self._status = RunStatus.ABORTED
            self._log.info("Run cancelled at operation %d", self._cursor)
        return True

    def close(self) -> None:
        """Release the worker thread, waiting for a running process."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    # ── Review navigation ───────────────────────────────────────

    @property
    def view_index(self) -> int:
        return self._view

    @property
    def viewed(self) -> Operation | None:
        if not self._operations:
            return None
        return self._operations[self._view]

    def view_previous(self) -> Operation | None:
        if self._view > 0:
            self._view -= 1
        return self.viewed

    def view_next(self) -> Operation | None:
        if self._view < self.reached:
            self._view += 1
        return self.viewed

    def view_at(self, index: int) -> Operation | None:
        """Jump the review cursor; clamps to ``[0, reached]``."""
        if self._operations:
            self._view = max(0, min(index, self.reached))
        return self.viewed

    # ── Internals ───────────────────────────────────────────────

    def _halt(self, op: Operation) -> RunStatus:
        self._status = RunStatus.FAILED
        self._view = op.index
        self._log.warning("Operation %d failed; run halted: %s", op.index, op.output.message)
        return self._status

    def _record_completion(self, receipt: Receipt) -> RunStatus:
        op = self._require_status(RunStatus.EXECUTING, "complete")
        self._pending = None
        op.complete(receipt)
        self._notify(op)

        if op.state == OperationState.FAILED:
            return self._halt(op)

        self._status = RunStatus.RUNNING
        self._log.info("mutate %d → %s (%dms)", op.index, op.state, receipt.duration_ms)
        return self._status

    def _require_idle(self, action: str) -> Operation:
        """The executing operation, provided no launched process owns it."""
        op = self._require_status(RunStatus.EXECUTING, action)
        if self._pending is not None:
            raise OperationStateError(f"Cannot {action}: operation {op.index} is already running")
        return op

    def _require_status(self, status: RunStatus, action: str) -> Operation:
        op = self.current
        if self._status != status or op is None:
            raise OperationStateError(f"Cannot {action} while run is {self._status}")
        return op

    def _notify(self, op: Operation) -> None:
        if self._on_progress is not None:
            self._on_progress(op)
