"""Adapters — the process-execution boundary.

Public re-exports for convenient access.
"""

from crewcli.adapters.base import Adapter, ExecutionContext
from crewcli.adapters.mock import MockAdapter
from crewcli.adapters.shell.command import ShellCommandAdapter, sanitize_for_exec

__all__ = [
    "Adapter",
    "ExecutionContext",
    "MockAdapter",
    "ShellCommandAdapter",
    "sanitize_for_exec",
]
