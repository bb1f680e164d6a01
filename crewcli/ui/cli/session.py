"""
Terminal session driver — wizard, run, outcome and review.

Drives the engine's state machines through click prompts.  Nothing in
here decides what happens next; it only asks the operator and forwards
the answers to the InputWizard and RunController.
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable, Mapping

import click

from crewcli.core.engine.controller import ProgressCallback, RunController, RunStatus
from crewcli.core.engine.wizard import InputWizard
from crewcli.core.models.field import ChoiceInput, InputField
from crewcli.core.models.operation import Operation, OperationState

_STATE_STYLE: dict[OperationState, tuple[str, str]] = {
    OperationState.SUCCEEDED: ("✓", "green"),
    OperationState.FAILED: ("✗", "red"),
    OperationState.SKIPPED: ("⊘", "yellow"),
    OperationState.EXECUTING: ("⏳", "cyan"),
    OperationState.AWAITING_CONFIRMATION: ("?", "cyan"),
    OperationState.UNSTARTED: ("·", "white"),
}

_OUTPUT_TAIL = 20


# ── Wizard ──────────────────────────────────────────────────────


def collect_parameters(wizard: InputWizard, title: str, show_help: bool = True) -> Mapping[str, str]:
    """Prompt for every visible field until the values validate.

    Returns the frozen parameter mapping.
    """
    click.secho(f"\n🛠  {title}", fg="cyan", bold=True)
    while True:
        _prompt_fields(wizard, show_help)
        click.echo()
        wizard.submit()
        _show_validation(wizard)

        if wizard.has_errors:
            click.secho("\n❌ Some values need fixing.", fg="red")
            wizard.edit()
            continue

        if click.confirm("\n   Proceed with these values?", default=True):
            return wizard.proceed()
        wizard.edit()


def _prompt_fields(wizard: InputWizard, show_help: bool) -> None:
    # Visibility can change as choices are answered, so re-read the
    # visible list on every step.
    index = 0
    while index < wizard.num_fields:
        field = wizard.fields[index]
        wizard.focus(index)
        if show_help and field.help_text:
            click.secho(textwrap.indent(field.help_text, "   "), dim=True)

        if isinstance(field.variant, ChoiceInput):
            value = click.prompt(
                f"   {field.title}",
                type=click.Choice(field.variant.options),
                default=field.value(),
            )
        else:
            value = click.prompt(
                f"   {field.title}",
                default=_prompt_default(field),
                show_default=bool(field.value() or field.default),
            )
        wizard.set_value(field.key, value.strip())
        index += 1


def _prompt_default(field: InputField) -> str | None:
    current = field.value() or field.default
    if current:
        return current
    # None makes click insist on an answer.
    return None if field.required else ""


def _show_validation(wizard: InputWizard) -> None:
    for field in wizard.fields:
        if field.error:
            click.secho(f"   ✗ {field.title}: {field.error}", fg="red")
            continue
        shown = field.value() or field.default
        if field.converted and "\n" not in field.converted and field.converted != shown:
            shown = f"{shown} → {field.converted}"
        click.echo(f"   ✓ {field.title}: {shown}")
        if field.info:
            click.secho(f"     ℹ {field.info}", fg="cyan")


# ── Run ─────────────────────────────────────────────────────────


def progress_printer(total: int) -> ProgressCallback:
    """Progress callback that prints each resolved operation."""

    def on_progress(op: Operation) -> None:
        if op.state == OperationState.AWAITING_CONFIRMATION:
            return
        if op.state == OperationState.EXECUTING:
            click.secho("   ⏳ running…", fg="cyan")
            return

        icon, color = _STATE_STYLE[op.state]
        click.secho(f"   {icon} [{op.index + 1}/{total}] {_headline(op)}", fg=color)
        if op.output.message:
            click.echo(f"     {op.output.message}")
        if op.is_mutate and op.state == OperationState.FAILED:
            _echo_output(op)

    return on_progress


def run_operations(controller: RunController) -> RunStatus:
    """Advance the run, asking before every mutate, until it finishes."""
    total = len(controller.operations)
    click.secho(f"\n⚡ Running {total} operations", fg="cyan", bold=True)

    while True:
        status = controller.advance()
        if status != RunStatus.PROMPT:
            return status

        op = controller.current
        assert op is not None  # guaranteed while prompting
        click.echo()
        click.secho(f"   ▶ [{op.index + 1}/{total}] {op.description}", bold=True)
        if op.link:
            click.echo(f"     {op.link}")
        click.echo(textwrap.indent(op.command, "     │ "))

        if not click.confirm("   Run this command?", default=True):
            return controller.confirm(False)

        controller.confirm(True)
        controller.launch()
        controller.wait()


def _headline(op: Operation) -> str:
    return op.description.split("\n", 1)[0]


def _echo_output(op: Operation) -> None:
    lines = op.output.log.rstrip("\n").split("\n")
    for line in lines[-_OUTPUT_TAIL:]:
        click.echo(f"     │ {line}")


# ── Outcome ─────────────────────────────────────────────────────


def show_outcome(
    controller: RunController,
    end_description: Callable[[], str],
    recreate_command: str,
) -> None:
    """Print the closing screen for the run's final status."""
    report = controller.report
    click.echo()
    if controller.status == RunStatus.COMPLETED:
        click.echo(end_description())
        click.secho(
            f"✅ Done: {report.succeeded} succeeded, {report.skipped} skipped, "
            f"{report.total} total",
            fg="green",
            bold=True,
        )
        return

    if controller.status == RunStatus.FAILED:
        op = controller.viewed
        click.secho("❌ A command failed; the run was halted.", fg="red", bold=True)
        if op is not None:
            click.echo(f"   {_headline(op)}")
            if op.output.message:
                click.echo(f"   {op.output.message}")
    else:
        click.secho("⚠️  Run aborted.", fg="yellow", bold=True)

    click.echo("\n   Fix the problem and restart with:")
    click.secho(f"   {recreate_command}", fg="cyan")


# ── Review ──────────────────────────────────────────────────────


def review_loop(
    controller: RunController,
    *,
    on_save: Callable[[], None] | None = None,
    on_recheck: Callable[[], bool] | None = None,
) -> None:
    """Page through resolved operations until the operator quits."""
    actions = ["p", "n", "q"]
    if on_save is not None:
        actions.insert(-1, "s")
    if on_recheck is not None:
        actions.insert(-1, "r")

    click.secho("\n🔎 Review  (p)revious (n)ext (s)ave (r)echeck VM (q)uit", fg="cyan")
    _show_operation(controller)
    while True:
        action = click.prompt("   >", type=click.Choice(actions), default="q", show_choices=False)
        if action == "q":
            return
        if action == "p":
            controller.view_previous()
            _show_operation(controller)
        elif action == "n":
            controller.view_next()
            _show_operation(controller)
        elif action == "s" and on_save is not None:
            on_save()
        elif action == "r" and on_recheck is not None:
            up = on_recheck()
            click.secho(
                "   ✅ VM is reachable" if up else "   ⏱ VM is not reachable yet",
                fg="green" if up else "yellow",
            )


def _show_operation(controller: RunController) -> None:
    op = controller.viewed
    if op is None:
        click.echo("   (no operations)")
        return
    icon, color = _STATE_STYLE[op.state]
    total = len(controller.operations)
    click.secho(f"\n   {icon} [{op.index + 1}/{total}] {op.kind} · {op.state}", fg=color, bold=True)
    click.echo(textwrap.indent(op.description, "   "))
    click.echo(textwrap.indent(op.command, "     │ "))
    if op.output.message:
        click.echo(f"     {op.output.message}")
    if op.output.log.strip():
        _echo_output(op)
