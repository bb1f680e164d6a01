"""
Adapter base — the contract between the engine and the shell.

The engine never spawns processes itself. It resolves a command string,
wraps it in an ExecutionContext and asks an adapter to run it. The
adapter returns a Receipt describing the exit status and captured output.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from pydantic import BaseModel

from crewcli.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class ExecutionContext(BaseModel):
    """Everything an adapter needs to run one command."""

    command: str
    operation_id: str = ""
    working_dir: str | None = None


class Adapter(ABC):
    """Abstract base class for command adapters.

    Adapters perform the external side effect and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, execute
        3. Hand the instance to the RunController / wizard
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool is available. Never raises."""

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the command can be run.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """
        if not context.command.strip():
            return False, "Missing command"
        return True, ""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Run the command and return a receipt.

        MUST never raise exceptions. Failures are captured in the
        Receipt with a non-zero exit code.
        """

    def run(self, command: str, operation_id: str = "") -> Receipt:
        """Validate and execute a command string.

        This is the entry point used by the engine.
        """
        start = time.monotonic()
        context = ExecutionContext(command=command, operation_id=operation_id)

        is_valid, error_msg = self.validate(context)
        if not is_valid:
            return Receipt.failure(
                adapter=self.name,
                operation_id=operation_id,
                command=command,
                exit_code=127,
                error=f"Validation failed: {error_msg}",
            )

        try:
            receipt = self.execute(context)
        except Exception as e:
            # Adapters should never raise, but defense in depth
            logger.error("Adapter %s raised during execution: %s", self.name, e)
            receipt = Receipt.failure(
                adapter=self.name,
                operation_id=operation_id,
                command=command,
                exit_code=1,
                error=f"Unexpected error: {e}",
            )

        if not receipt.duration_ms:
            receipt.duration_ms = int((time.monotonic() - start) * 1000)
        return receipt

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
