"""
Receipt model — the execution contract.

The engine hands a resolved command to an adapter; the adapter hands back
a Receipt. Adapters NEVER raise: a command that cannot be started, or
that exits non-zero, is still described by a Receipt.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of running one shell command.

    ``output`` is the combined stdout/stderr stream, in the order the
    process wrote it.
    """

    adapter: str
    operation_id: str = ""
    command: str = ""
    exit_code: int = 0

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None        # set when the process could not run at all

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0

    @property
    def failed(self) -> bool:
        return not self.ok

    @classmethod
    def success(
        cls,
        adapter: str,
        operation_id: str = "",
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a receipt for a command that exited 0."""
        return cls(
            adapter=adapter,
            operation_id=operation_id,
            exit_code=0,
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        operation_id: str = "",
        exit_code: int = 1,
        output: str = "",
        error: str | None = None,
        **kwargs: Any,
    ) -> Receipt:
        """Create a receipt for a command that exited non-zero."""
        if exit_code == 0:
            raise ValueError("a failure receipt needs a non-zero exit code")
        return cls(
            adapter=adapter,
            operation_id=operation_id,
            exit_code=exit_code,
            output=output,
            error=error,
            **kwargs,
        )
