"""
Flow — one provisioning procedure the wizard and engine can drive.

A flow declares:
    fields()           the wizard fields, with their converters
    presets()          store values set from CLI flags and config before editing
    plan()             the operations, given the frozen parameters
    end_description()  what the operator reads once the run completed
    FLAGS              CLI flag → store key, for the recreate command

The engine itself knows nothing about GCP; everything provider-specific
lives in the flow subclasses.
"""

from __future__ import annotations

import logging
import shlex
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from crewcli.adapters.base import Adapter
from crewcli.core.data import DataRegistry, get_registry
from crewcli.core.engine.plan import PlanBuilder, PlanError
from crewcli.core.engine.wizard import FieldSpec, InputWizard
from crewcli.core.models.operation import Operation
from crewcli.core.models.params import ParameterStore
from crewcli.core.services.gcp import CLI_NAME

logger = logging.getLogger(__name__)


class FlowOptionError(ValueError):
    """A CLI option or config default has an unusable value."""


def continuation(fragment: str) -> str:
    """Format a flag as an extra continuation line of a multi-line command.

    Templates place such values right after a trailing backslash, so an
    empty value leaves the command intact.
    """
    return f"\n\t{fragment} \\"


def container_env(name: str, value: str) -> str:
    return continuation(f'--container-env="{name}={value}"')


class Flow(ABC):
    """Base class for provisioning flows."""

    name: str = ""
    command: str = ""
    title: str = ""
    FLAGS: dict[str, str] = {}

    def __init__(self, adapter: Adapter, registry: DataRegistry | None = None):
        self.adapter = adapter
        self.registry = registry or get_registry()

    # ── Declarations ────────────────────────────────────────────

    @abstractmethod
    def fields(self) -> list[FieldSpec]:
        """Wizard fields, in display order."""

    @abstractmethod
    def presets(self, options: Mapping[str, Any]) -> dict[str, str]:
        """Initial store values from resolved CLI options."""

    @abstractmethod
    def plan(self, params: Mapping[str, str]) -> PlanBuilder:
        """Declare the run's operations."""

    @abstractmethod
    def end_description(self, params: Mapping[str, str], reachable: bool = False) -> str:
        """Closing text shown once the run completed."""

    # ── Assembly ────────────────────────────────────────────────

    def create_store(self, options: Mapping[str, Any]) -> ParameterStore:
        store = ParameterStore()
        store.update(self.presets(options))
        return store

    def create_wizard(
        self,
        store: ParameterStore,
        *,
        scratch_dir: Path | None = None,
        log: logging.Logger | None = None,
    ) -> InputWizard:
        return InputWizard(self.fields(), store, scratch_dir=scratch_dir, log=log)

    def build_operations(self, params: Mapping[str, str]) -> list[Operation]:
        """Declare and resolve the run's operations.

        Raises:
            PlanError: if a template references a key the store lacks.
        """
        builder = self.plan(params)
        missing = builder.required_parameters() - set(params)
        if missing:
            raise PlanError(f"{self.name}: parameters missing for {sorted(missing)}")
        operations = builder.build(params)
        logger.info("%s: %d operations planned", self.name, len(operations))
        return operations

    # ── Recreate command ────────────────────────────────────────

    def flag_value(self, key: str, value: str) -> str | None:
        """Value to pass for ``key``'s flag, or None to leave the flag out."""
        return value or None

    def recreate_command(self, values: Mapping[str, str], program: str = CLI_NAME) -> str:
        """An invocation that restarts this flow with the same inputs."""
        parts = [program, *self.command.split()]
        for flag, key in self.FLAGS.items():
            value = self.flag_value(key, values.get(key, ""))
            if value is None:
                continue
            parts.append(f"--{flag}={shlex.quote(value)}")
        return " ".join(parts)


def option(options: Mapping[str, Any], name: str, default: str = "") -> str:
    """A string option, ``default`` when unset or empty."""
    value = options.get(name)
    if value is None or value == "":
        return default
    return str(value)
