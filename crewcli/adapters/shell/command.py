"""
Shell command adapter — run a command through bash and capture output.

This is the process-execution primitive of the engine. There is no
timeout: a hung command hangs the caller, and the caller decides how to
present that.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from crewcli.adapters.base import Adapter, ExecutionContext
from crewcli.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


def sanitize_for_exec(command: str) -> str:
    """Join a multi-line command into a single line.

    Commands are written with trailing backslash continuations::

        gcloud compute ssh vm \\
            --zone us-central1-c

    Each line is trimmed of surrounding spaces, tabs and backslashes and
    the lines are joined with single spaces.
    """
    lines = command.split("\n")
    return " ".join(line.strip("\\ \t") for line in lines)


class ShellCommandAdapter(Adapter):
    """Execute commands with ``bash -c`` and capture combined output."""

    def __init__(self, shell: str = "bash"):
        self._shell = shell

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which(self._shell) is not None

    def execute(self, context: ExecutionContext) -> Receipt:
        command = sanitize_for_exec(context.command)
        logger.debug("Executing: %s", command)
        start = time.monotonic()

        try:
            result = subprocess.run(
                [self._shell, "-c", command],
                cwd=context.working_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                operation_id=context.operation_id,
                command=command,
                exit_code=127,
                error=f"Command execution error: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Exit %d after %dms: %s", result.returncode, elapsed_ms, command)

        return Receipt(
            adapter=self.name,
            operation_id=context.operation_id,
            command=command,
            exit_code=result.returncode,
            output=result.stdout or "",
            duration_ms=elapsed_ms,
        )
