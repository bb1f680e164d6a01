"""
Mock adapter — test double for the shell.

Used by ``--mock`` rehearsals and by the test-suite to simulate command
outcomes without touching gcloud. Responses are matched by substring of
the resolved command, first match wins.
"""

from __future__ import annotations

from crewcli.adapters.base import Adapter, ExecutionContext
from crewcli.core.models.receipt import Receipt


class MockAdapter(Adapter):
    """Scriptable mock adapter.

    By default every command exits with ``default_exit_code``. Individual
    commands can be scripted with ``set_response`` / ``set_failure``.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_exit_code: int = 0,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_exit_code = default_exit_code
        self._default_output = default_output
        self._responses: list[tuple[str, int, str]] = []
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        """The command strings received, in order."""
        return [c.command for c in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, match: str, exit_code: int = 0, output: str = "") -> None:
        """Script the outcome of any command containing ``match``."""
        self._responses.append((match, exit_code, output))

    def set_failure(self, match: str, exit_code: int = 1, output: str = "Mock failure") -> None:
        """Configure commands containing ``match`` to fail."""
        self.set_response(match, exit_code=exit_code, output=output)

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        exit_code, output = self._default_exit_code, self._default_output
        for match, code, out in self._responses:
            if match in context.command:
                exit_code, output = code, out
                break

        return Receipt(
            adapter=self._name,
            operation_id=context.operation_id,
            command=context.command,
            exit_code=exit_code,
            output=output,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._responses.clear()
