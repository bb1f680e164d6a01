"""
GCP upgrade flow — move an installed tower VM to a new image.

The VM's external IP is looked up while converting the VM name.  Old
images are pruned over SSH only when the VM accepts SSH connections;
the container update itself always asks for confirmation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from crewcli.core.engine.plan import PlanBuilder
from crewcli.core.engine.template import expand
from crewcli.core.engine.wizard import ConversionContext, FieldError, FieldSpec
from crewcli.core.flows import keys as k
from crewcli.core.flows.base import Flow, option
from crewcli.core.flows.gcp_install import CONSOLE_LINK
from crewcli.core.models.field import InputField
from crewcli.core.services import gcp

logger = logging.getLogger(__name__)


# Succeeds when the SSH port is closed, so pruning is skipped.
CHECK_SSH = (
    'if nc -w 1 -z "${VIRTUAL_MACHINE_IP}" 22; then exit 1; else exit 0; fi'
)

PRUNE_IMAGES = """gcloud compute ssh ${VIRTUAL_MACHINE} \\
	--project ${GOOGLE_PROJECT_ID} \\
	--zone ${ZONE} \\
	--command 'docker system prune -f -a'"""

# update-container keeps the args and envs the VM was created with.
UPDATE_CONTAINER = """gcloud compute instances update-container ${VIRTUAL_MACHINE} \\
	--project=${GOOGLE_PROJECT_ID} \\
	--zone=${ZONE} \\
	--container-image="${IMAGE_PATH}:${TOWER_VERSION}" \\
	--container-env="FC_PACKAGE_VERSION=${TOWER_VERSION}\""""

END_DESCRIPTION = f"""## Your Tower is upgraded! 🕊

${{MESSAGE}}

`${{VIRTUAL_MACHINE}}` now runs `${{IMAGE_PATH}}:${{TOWER_VERSION}}`.

See your VM in the console:
{CONSOLE_LINK}

Follow the new container's logs:
```sh
gcloud compute ssh ${{VIRTUAL_MACHINE}} --project ${{GOOGLE_PROJECT_ID}} --zone ${{ZONE}}
docker logs --follow $(docker ps -f name="${{IMAGE_PATH}}:${{TOWER_VERSION}}" --format="{{{{.ID}}}}")
```
"""

VM_RUNNING = "✅ Your VM is available and running!"
VM_RESTARTING = "⏱ Your VM is restarting with the new image."


class GcpUpgradeFlow(Flow):
    """Upgrade the tower image of an existing VM."""

    name = "upgrade"
    command = "gcp upgrade"
    title = "Google Cloud Platform Upgrade"
    FLAGS = {
        "project": k.PROJECT,
        "vm": k.VIRTUAL_MACHINE,
        "tower-version": k.TOWER_VERSION,
        "zone": k.ZONE,
    }

    def __init__(self, *args: Any, project_hint: str | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.project_hint = project_hint

    def fields(self) -> list[FieldSpec]:
        return [
            FieldSpec(
                k.PROJECT, "Project ID",
                help_text="Project ID is the unique string identifier for your Google Cloud Platform project.",
                required=True,
                placeholder=self.project_hint or "project-id-1234",
            ),
            FieldSpec(
                k.VIRTUAL_MACHINE, "VM Name",
                help_text="VM Name is the name of the Flightcrew virtual machine instance to upgrade.",
                required=True,
                default=k.DEFAULT_VM,
                placeholder=k.DEFAULT_VM,
                char_limit=64,
                convert=self._convert_vm,
                after=(k.PROJECT, k.ZONE),
            ),
            FieldSpec(
                k.ZONE, "Zone",
                help_text="Zone is the Google zone where the Flightcrew virtual machine instance is located.",
                default=k.DEFAULT_ZONE,
                placeholder=k.DEFAULT_ZONE,
                char_limit=32,
            ),
            FieldSpec(
                k.TOWER_VERSION, "Tower Version",
                help_text=(
                    "Tower Version is the version of the Tower image to upgrade to. "
                    "(recommended: `stable`)"
                ),
                default=k.DEFAULT_TOWER_VERSION,
                placeholder=k.DEFAULT_TOWER_VERSION,
                char_limit=32,
                convert=self._convert_tower_version,
            ),
        ]

    def presets(self, options: Mapping[str, Any]) -> dict[str, str]:
        presets = {
            k.ZONE: option(options, "zone", k.DEFAULT_ZONE),
            k.TOWER_VERSION: option(options, "tower_version", k.DEFAULT_TOWER_VERSION),
            k.VIRTUAL_MACHINE: option(options, "vm", k.DEFAULT_VM),
            k.IMAGE_PATH: gcp.IMAGE_PATH,
            k.VIRTUAL_MACHINE_IP: "",
        }
        project = option(options, "project")
        if project:
            presets[k.PROJECT] = project
        return presets

    # ── Converters ──────────────────────────────────────────────

    def _convert_vm(self, ctx: ConversionContext, field: InputField) -> None:
        # The lookup needs a project; its own error already explains why not.
        if ctx.field(k.PROJECT).error:
            return
        zone = ctx.field(k.ZONE).value() or k.DEFAULT_ZONE
        try:
            ip = gcp.vm_external_ip(self.adapter, ctx.field(k.PROJECT).value(), zone, field.value())
        except gcp.GcloudError as e:
            raise FieldError(str(e)) from e

        ctx.store.set(k.VIRTUAL_MACHINE_IP, ip)
        field.set_info(f"found VM with IP {ip}" if ip else "found stopped VM")

    def _convert_tower_version(self, ctx: ConversionContext, field: InputField) -> None:
        requested = field.value() or field.default
        try:
            version = gcp.resolve_tower_version(self.adapter, requested)
        except gcp.GcloudError as e:
            raise FieldError(str(e)) from e
        field.set_converted(version)

    # ── Plan ────────────────────────────────────────────────────

    def plan(self, params: Mapping[str, str]) -> PlanBuilder:
        b = PlanBuilder()
        check = b.check(
            CHECK_SSH,
            "This command checks whether the virtual machine is reachable through SSH.",
            success_message="VM is unavailable for SSH access, skipping image pruning.",
            failure_message="SSH access is available. Next step is to prune images from the machine.",
        )
        b.mutate(
            PRUNE_IMAGES,
            "This command prunes old images on the virtual machine (through SSH) "
            "to save space before downloading a new one.",
            depends_on=check,
        )
        b.mutate(
            UPDATE_CONTAINER,
            "This command updates the VM to the ${TOWER_VERSION} Control Tower image.",
        )
        return b

    def end_description(self, params: Mapping[str, str], reachable: bool = False) -> str:
        message = VM_RUNNING if reachable else VM_RESTARTING
        return expand(END_DESCRIPTION, {**params, "MESSAGE": message})
