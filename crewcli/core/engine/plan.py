"""
Plan builder — declare a flow's operations, then resolve them once.

Flows describe their operations as templates. The builder keeps them in
a flat list and hands out integer handles; a mutate names its
prerequisite check by handle. Because a handle only exists once the
check has been added, a prerequisite is always strictly earlier in the
list. ``build()`` expands every template against the frozen parameters
and returns the Operation list the RunController drives.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from crewcli.core.engine.template import expand, placeholders
from crewcli.core.models.operation import Operation, OperationKind, OperationState

logger = logging.getLogger(__name__)


class PlanError(ValueError):
    """Raised when a plan declaration is inconsistent."""


@dataclass(frozen=True)
class OperationTemplate:
    """An operation before template expansion."""

    kind: OperationKind
    command: str
    description: str = ""
    link: str = ""
    depends_on: int | None = None
    success_message: str = ""
    failure_message: str = ""
    # Local bindings, applied in the same pass as the flow parameters.
    bindings: Mapping[str, str] = field(default_factory=dict)

    def placeholders(self) -> set[str]:
        return set(placeholders(self.command)) | set(placeholders(self.description))


class PlanBuilder:
    """Collects operation templates in run order."""

    def __init__(self) -> None:
        self._templates: list[OperationTemplate] = []

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def templates(self) -> list[OperationTemplate]:
        return list(self._templates)

    def check(
        self,
        command: str,
        description: str = "",
        *,
        success_message: str = "",
        failure_message: str = "",
        bindings: Mapping[str, str] | None = None,
    ) -> int:
        """Add a read-only check. Returns its handle."""
        return self._add(
            OperationTemplate(
                kind=OperationKind.CHECK,
                command=command,
                description=description,
                success_message=success_message,
                failure_message=failure_message,
                bindings=dict(bindings or {}),
            )
        )

    def mutate(
        self,
        command: str,
        description: str = "",
        *,
        depends_on: int | None = None,
        link: str = "",
        bindings: Mapping[str, str] | None = None,
    ) -> int:
        """Add a mutating command, optionally skipped when ``depends_on`` succeeds."""
        if depends_on is not None:
            self._check_prerequisite(depends_on)
        return self._add(
            OperationTemplate(
                kind=OperationKind.MUTATE,
                command=command,
                description=description,
                link=link,
                depends_on=depends_on,
                bindings=dict(bindings or {}),
            )
        )

    def required_parameters(self) -> set[str]:
        """Placeholder names the flow parameters must provide."""
        names: set[str] = set()
        for tmpl in self._templates:
            names |= tmpl.placeholders() - set(tmpl.bindings)
        return names

    def build(self, params: Mapping[str, str]) -> list[Operation]:
        """Expand every template and return the operation list.

        Raises:
            TemplateError: if a placeholder has no value.
        """
        operations: list[Operation] = []
        for index, tmpl in enumerate(self._templates):
            values = {**params, **tmpl.bindings}
            messages: dict[OperationState, str] = {}
            if tmpl.success_message:
                messages[OperationState.SUCCEEDED] = expand(tmpl.success_message, values)
            if tmpl.failure_message:
                messages[OperationState.FAILED] = expand(tmpl.failure_message, values)

            operations.append(
                Operation(
                    index=index,
                    kind=tmpl.kind,
                    command=expand(tmpl.command, values),
                    description=expand(tmpl.description, values),
                    link=tmpl.link,
                    depends_on=tmpl.depends_on,
                    messages=messages,
                )
            )

        logger.debug("Built plan with %d operations", len(operations))
        return operations

    # ── Internals ───────────────────────────────────────────────

    def _add(self, tmpl: OperationTemplate) -> int:
        self._templates.append(tmpl)
        return len(self._templates) - 1

    def _check_prerequisite(self, handle: int) -> None:
        if not 0 <= handle < len(self._templates):
            raise PlanError(
                f"Prerequisite {handle} must be an earlier operation "
                f"(plan has {len(self._templates)})"
            )
        if self._templates[handle].kind != OperationKind.CHECK:
            raise PlanError(f"Prerequisite {handle} is not a check")


def validate_operations(operations: list[Operation]) -> list[str]:
    """Check list invariants of an already-built operation list.

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    for position, op in enumerate(operations):
        if op.index != position:
            errors.append(f"Operation at position {position} has index {op.index}")
        if op.depends_on is None:
            continue
        if op.is_check:
            errors.append(f"Check {position} cannot depend on another operation")
        elif not 0 <= op.depends_on < position:
            errors.append(
                f"Operation {position} depends on {op.depends_on}, "
                "which is not strictly earlier"
            )
        elif not operations[op.depends_on].is_check:
            errors.append(f"Operation {position} depends on non-check {op.depends_on}")
    return errors
