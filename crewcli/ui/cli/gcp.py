"""
CLI commands for Google Cloud Platform — install and upgrade the tower.

Each command gathers inputs through the wizard, then walks the planned
gcloud operations one confirmation at a time.
"""

from __future__ import annotations

import re
import sys
import tempfile
from pathlib import Path
from typing import Any

import click

from crewcli.adapters.base import Adapter, ExecutionContext
from crewcli.adapters.mock import MockAdapter
from crewcli.core.models.receipt import Receipt


@click.group()
def gcp() -> None:
    """Google Cloud Platform — install or upgrade the Control Tower."""


# ── Shared options ──────────────────────────────────────────────


def _session_options(func):
    func = click.option(
        "--review",
        is_flag=True,
        help="Page through the operations once the run is over.",
    )(func)
    func = click.option(
        "--mock",
        is_flag=True,
        help="Rehearse with canned gcloud answers; nothing is executed.",
    )(func)
    func = click.option(
        "--report",
        "report_path",
        type=click.Path(dir_okay=False),
        default=None,
        help="Save a text report of the run to this file.",
    )(func)
    return func


# ── Install ─────────────────────────────────────────────────────


@gcp.command()
@click.option("--token", "-t", default=None, help="Flightcrew API token.")
@click.option(
    "--tower-version", "-v", default=None,
    help="Tower image version: stable, latest or x.y.z (default: stable).",
)
@click.option("--vm", default=None, help="Name of the virtual machine to create.")
@click.option(
    "--write", "-w",
    type=click.BOOL, is_flag=False, flag_value=True, default=None,
    help="Grant write permissions so the tower can act on its suggestions.",
)
@click.option("--project", "-p", default=None, help="Google Cloud project ID.")
@click.option("--zone", "-l", default=None, help="Zone of the VM (default: us-central1-c).")
@click.option("--platform", default=None, help="Platform to manage: gae_std or gce.")
@_session_options
@click.pass_context
def install(ctx: click.Context, report_path: str | None, mock: bool, review: bool, **flags: Any) -> None:
    """Install the Control Tower into a project."""
    from crewcli.core.flows import FLOWS

    _run_flow(ctx, FLOWS["install"], flags, report_path=report_path, mock=mock, review=review)


# ── Upgrade ─────────────────────────────────────────────────────


@gcp.command()
@click.option(
    "--tower-version", "-v", default=None,
    help="Tower image version: stable, latest or x.y.z (default: stable).",
)
@click.option("--vm", default=None, help="Name of the virtual machine to upgrade.")
@click.option("--project", "-p", default=None, help="Google Cloud project ID.")
@click.option("--zone", "-l", default=None, help="Zone of the VM (default: us-central1-c).")
@_session_options
@click.pass_context
def upgrade(ctx: click.Context, report_path: str | None, mock: bool, review: bool, **flags: Any) -> None:
    """Upgrade the Control Tower to a new image."""
    from crewcli.core.flows import FLOWS

    _run_flow(ctx, FLOWS["upgrade"], flags, report_path=report_path, mock=mock, review=review)


# ── Session ─────────────────────────────────────────────────────


def _run_flow(
    ctx: click.Context,
    flow_cls: type,
    flags: dict[str, Any],
    *,
    report_path: str | None,
    mock: bool,
    review: bool,
) -> None:
    from crewcli.adapters.shell.command import ShellCommandAdapter
    from crewcli.core.engine.controller import RunController, RunStatus
    from crewcli.core.engine.plan import PlanError
    from crewcli.core.flows import FlowOptionError
    from crewcli.core.flows import keys as k
    from crewcli.core.observability.logging_config import debug_log, resolve_log_file
    from crewcli.core.persistence.report import default_report_path, render_report, write_report
    from crewcli.core.services import gcp as gcloud
    from crewcli.core.services.probe import ReachabilityProbe
    from crewcli.ui.cli.session import (
        collect_parameters,
        progress_printer,
        review_loop,
        run_operations,
        show_outcome,
    )

    config = ctx.obj["config"]
    options = config.flow_defaults(flow_cls.name).as_presets()
    options.update({key: value for key, value in flags.items() if value is not None})

    adapter: Adapter
    if mock:
        click.secho("🎭 Mock mode: gcloud is simulated, nothing will change.", fg="yellow")
        adapter = rehearsal_adapter()
        project_hint = None
    else:
        adapter = ShellCommandAdapter()
        if not gcloud.has_gcloud(adapter):
            click.echo(gcloud.GCLOUD_INSTALL_HINT)
            click.secho("❌ gcloud is not installed or not in PATH", fg="red")
            sys.exit(1)
        project_hint = None if options.get("project") else gcloud.default_project(adapter)

    flow = flow_cls(adapter, project_hint=project_hint)
    try:
        store = flow.create_store(options)
    except FlowOptionError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    log_path = resolve_log_file(ctx.obj["log_file"], config.log_file)
    with (
        debug_log(log_path) as log,
        tempfile.TemporaryDirectory(prefix=f"flightcrew-gcp-{flow.name}-") as scratch,
    ):
        wizard = flow.create_wizard(store, scratch_dir=Path(scratch), log=log)
        params = collect_parameters(wizard, flow.title, show_help=not ctx.obj["quiet"])

        try:
            operations = flow.build_operations(params)
        except PlanError as e:
            click.secho(f"❌ {e}", fg="red")
            sys.exit(1)

        on_progress = progress_printer(len(operations))
        with RunController(operations, adapter, on_progress=on_progress, log=log) as controller:
            status = run_operations(controller)

            probe = ReachabilityProbe(
                adapter, params[k.PROJECT], params[k.ZONE], params[k.VIRTUAL_MACHINE]
            )
            if status == RunStatus.COMPLETED:
                probe.probe()
            show_outcome(
                controller,
                lambda: flow.end_description(params, reachable=probe.reachable),
                flow.recreate_command(params),
            )

            target: Path | None = None
            if report_path:
                target = Path(report_path)
            elif config.report_dir:
                target = default_report_path(Path(config.report_dir).expanduser(), flow.name)

            def save() -> None:
                path = target or default_report_path(Path.cwd(), flow.name)
                content = render_report(
                    controller.operations, title=flow.title, summary=controller.report
                )
                try:
                    write_report(content, path)
                except OSError as e:
                    click.secho(f"❌ Could not save report: {e}", fg="red")
                    return
                click.secho(f"💾 Report saved to {path}", fg="green")

            if target is not None:
                save()
            if review:
                review_loop(
                    controller,
                    on_save=save,
                    on_recheck=probe.probe if status == RunStatus.COMPLETED else None,
                )

    if status != RunStatus.COMPLETED:
        sys.exit(1)


# ── Mock rehearsal ──────────────────────────────────────────────


class _RehearsalAdapter(MockAdapter):
    """Mock that answers VM lookups for whatever name is asked about."""

    _VM_FILTER = re.compile(r'--filter="name=([^"]*)"')

    def execute(self, context: ExecutionContext) -> Receipt:
        receipt = super().execute(context)
        match = self._VM_FILTER.search(context.command)
        if match is None:
            return receipt
        return receipt.model_copy(update={
            "exit_code": 0,
            "output": f"NAME,EXTERNAL_IP,STATUS\n{match.group(1)},203.0.113.10,RUNNING\n",
        })


def rehearsal_adapter() -> MockAdapter:
    """Canned gcloud answers: a fresh project and a running VM.

    Nothing exists yet, so every install check fails and its create
    step runs.  Tags resolve ``stable`` to 1.4.2 and the SSH port is
    open.
    """
    adapter = _RehearsalAdapter(adapter_name="rehearsal")
    adapter.set_failure("get-ancestors", output="")
    adapter.set_response(
        "artifacts docker tags list",
        output="TAG,VERSION\nstable,sha256:a1\nlatest,sha256:b2\n1.4.2,sha256:a1\n1.5.0,sha256:b2\n",
    )
    adapter.set_failure("roles describe", output="")
    adapter.set_failure("service-accounts describe", output="")
    adapter.set_failure("get-iam-policy", output="")
    adapter.set_failure("instances list", output="")
    adapter.set_response("nc -w 1 -z", output="")
    return adapter
