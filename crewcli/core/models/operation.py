"""
Operation — state machine for one shell command in a run.

Kinds:
    CHECK   Read-only probe. Evaluated automatically, never prompts.
    MUTATE  Has side effects. Skipped when its prerequisite check
            succeeded, otherwise confirmed by the operator.

Transitions:
    UNSTARTED → SUCCEEDED | FAILED              check evaluated
    UNSTARTED → SKIPPED                         mutate, prerequisite succeeded
    UNSTARTED → AWAITING_CONFIRMATION           mutate, no prerequisite or it failed
    AWAITING_CONFIRMATION → EXECUTING           operator confirmed
    EXECUTING → SUCCEEDED | FAILED              process completed

SKIPPED, SUCCEEDED and FAILED are terminal.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from crewcli.core.models.receipt import Receipt

if TYPE_CHECKING:
    from crewcli.adapters.base import Adapter

logger = logging.getLogger(__name__)


class OperationKind(StrEnum):
    CHECK = "check"
    MUTATE = "mutate"


class OperationState(StrEnum):
    UNSTARTED = "unstarted"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {OperationState.SKIPPED, OperationState.SUCCEEDED, OperationState.FAILED}
)


class OperationStateError(RuntimeError):
    """An operation was driven outside its valid state. Programming error."""


class PrerequisiteError(OperationStateError):
    """A mutate was evaluated before its prerequisite check finished."""


class OperationOutput(BaseModel):
    """What an operation produced. Empty until it resolves."""

    log: str = ""                   # combined stdout/stderr
    message: str = ""               # outcome message shown to the operator
    exit_code: int | None = None
    duration_ms: int = 0


class Operation(BaseModel):
    """One resolved command and its progress through the run."""

    index: int
    kind: OperationKind
    command: str
    description: str = ""
    link: str = ""
    depends_on: int | None = None
    messages: dict[OperationState, str] = Field(default_factory=dict)

    state: OperationState = OperationState.UNSTARTED
    output: OperationOutput = Field(default_factory=OperationOutput)

    @property
    def is_check(self) -> bool:
        return self.kind == OperationKind.CHECK

    @property
    def is_mutate(self) -> bool:
        return self.kind == OperationKind.MUTATE

    @property
    def terminal(self) -> bool:
        return self.state.terminal

    @property
    def operation_id(self) -> str:
        return f"{self.index}:{self.kind}"

    # ── Transitions ─────────────────────────────────────────────

    def evaluate(self, prerequisite: Operation | None, adapter: Adapter) -> bool:
        """Resolve this operation as far as possible without the operator.

        Args:
            prerequisite: The check named by ``depends_on``, or None.
            adapter: Runs the command of a check.

        Returns:
            True if the operator must confirm before continuing,
            False if the operation resolved on its own.
        """
        self._require(OperationState.UNSTARTED, "evaluate")

        if self.is_check:
            receipt = adapter.run(self.command, operation_id=self.operation_id)
            self._record(receipt)
            logger.debug("Check %d → %s", self.index, self.state)
            return False

        if prerequisite is None:
            self.state = OperationState.AWAITING_CONFIRMATION
            return True

        if prerequisite.index != self.depends_on:
            raise OperationStateError(
                f"Operation {self.index} depends on {self.depends_on}, "
                f"got prerequisite {prerequisite.index}"
            )
        if not prerequisite.terminal:
            raise PrerequisiteError(
                f"Prerequisite {prerequisite.index} of operation {self.index} "
                f"is still {prerequisite.state}"
            )

        if prerequisite.state == OperationState.SUCCEEDED:
            self.state = OperationState.SKIPPED
            self.output.message = prerequisite.messages.get(OperationState.SUCCEEDED, "")
            logger.debug("Mutate %d skipped: check %d succeeded", self.index, prerequisite.index)
            return False

        self.state = OperationState.AWAITING_CONFIRMATION
        return True

    def confirm(self, yes: bool) -> bool:
        """Answer the confirmation prompt.

        Returns:
            True if execution begins, False if the operator declined
            (the caller aborts the run; this operation stays unanswered).
        """
        self._require(OperationState.AWAITING_CONFIRMATION, "confirm")
        if yes:
            self.state = OperationState.EXECUTING
        return yes

    def complete(self, receipt: Receipt) -> None:
        """Record the outcome of the executing command."""
        self._require(OperationState.EXECUTING, "complete")
        self._record(receipt)

    # ── Internals ───────────────────────────────────────────────

    def _record(self, receipt: Receipt) -> None:
        self.state = OperationState.SUCCEEDED if receipt.ok else OperationState.FAILED
        message = self.messages.get(self.state, "")
        if not message and receipt.error:
            message = receipt.error
        if not message and self.state == OperationState.FAILED:
            message = f"Command exited with code {receipt.exit_code}"
        self.output = OperationOutput(
            log=receipt.output,
            message=message,
            exit_code=receipt.exit_code,
            duration_ms=receipt.duration_ms,
        )

    def _require(self, state: OperationState, action: str) -> None:
        if self.state != state:
            raise OperationStateError(
                f"Cannot {action} operation {self.index} in state {self.state}"
            )
