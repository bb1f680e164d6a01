"""
GCP install flow — create the IAM roles, service account, bindings and
the tower VM in a Google Cloud project.

Run order:
    IAM role (Read, plus Write when requested)    check → create
    service account                               check → create
    IAM policy binding per role                   check → attach
    tower VM                                      check → create, disable logging

Every mutate is skipped when its check finds the resource already there,
so re-running the flow against a finished install changes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from crewcli.core.engine.plan import PlanBuilder
from crewcli.core.engine.template import expand
from crewcli.core.engine.wizard import ConversionContext, FieldError, FieldSpec
from crewcli.core.flows import keys as k
from crewcli.core.flows.base import Flow, FlowOptionError, container_env, continuation, option
from crewcli.core.models.field import InputField
from crewcli.core.services import gcp
from crewcli.core.services.timeconv import format_hms, parse_duration

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Command templates
# ═══════════════════════════════════════════════════════════════════

SERVICE_ACCOUNT_EMAIL = "${SERVICE_ACCOUNT}@${GOOGLE_PROJECT_ID}.iam.gserviceaccount.com"

CHECK_ROLE = """gcloud iam roles describe \\${PROJECT_OR_ORG_FLAG}
	"${ROLE}" >/dev/null 2>&1"""

CREATE_ROLE = """gcloud iam roles create ${ROLE} \\${PROJECT_OR_ORG_FLAG}
	--file=${FILE}"""

CHECK_SERVICE_ACCOUNT = (
    'gcloud iam service-accounts describe --project="${GOOGLE_PROJECT_ID}" '
    f'"{SERVICE_ACCOUNT_EMAIL}" > /dev/null 2>&1'
)

CREATE_SERVICE_ACCOUNT = """gcloud iam service-accounts create "${SERVICE_ACCOUNT}" \\
	--project="${GOOGLE_PROJECT_ID}" \\
	--display-name="${SERVICE_ACCOUNT}" \\
	--description="Runs Flightcrew's Control Tower VM.\""""

CHECK_BINDING = (
    'gcloud projects get-iam-policy ${GOOGLE_PROJECT_ID} '
    '--filter="bindings.role=${PROJECT_OR_ORG_SLASH}/roles/${ROLE}" '
    '--flatten=bindings --format="table(bindings.members,bindings.role)" '
    f"| grep --quiet \"'serviceAccount:{SERVICE_ACCOUNT_EMAIL}'\""
)

ATTACH_BINDING = f"""gcloud projects add-iam-policy-binding "${{GOOGLE_PROJECT_ID}}" \\
	--member=serviceAccount:"{SERVICE_ACCOUNT_EMAIL}" \\
	--role="${{PROJECT_OR_ORG_SLASH}}/roles/${{ROLE}}" \\
	--condition=None"""

CHECK_VM = """gcloud compute instances list --format="csv(NAME,EXTERNAL_IP,STATUS)" \\${PROJECT_OR_ORG_FLAG}
	--zones=${ZONE} | awk -F "," "/${VIRTUAL_MACHINE}/ {print f(2), f(3)} function f(n){return (\\$n==\\"\\" ? \\"null\\" : \\$n)}" | [ $(wc -c) -gt "0" ]"""

CREATE_VM = f"""gcloud compute instances create-with-container ${{VIRTUAL_MACHINE}} \\
	--project=${{GOOGLE_PROJECT_ID}} \\
	--container-command="/ko-app/tower" \\
	--container-image="${{IMAGE_PATH}}:${{TOWER_VERSION}}" \\
	--container-arg="--debug=true" \\
	--container-env="FC_API_KEY=${{API_TOKEN}}" \\
	--container-env="CLOUD_PLATFORM=${{PLATFORM}}" \\${{TRAFFIC_ROUTER}}${{GAE_MAX_VERSION_COUNT}}${{GAE_MAX_VERSION_AGE}}
	--container-env="FC_PACKAGE_VERSION=${{TOWER_VERSION}}" \\
	--container-env="METRIC_PROVIDERS=stackdriver" \\
	--container-env="FC_RPC_CONNECT_HOST=${{RPC_HOST}}" \\
	--container-env="FC_RPC_CONNECT_PORT=443" \\
	--container-env="FC_TOWER_PORT=8080" \\
	--labels="component=flightcrew" \\
	--machine-type="e2-micro" \\
	--scopes="cloud-platform" \\
	--service-account="{SERVICE_ACCOUNT_EMAIL}" \\
	--tags="http-server" \\
	--zone="${{ZONE}}\""""

DISABLE_VM_LOGGING = """gcloud compute instances add-metadata ${VIRTUAL_MACHINE} \\
	--project=${GOOGLE_PROJECT_ID} \\
	--zone=${ZONE} \\
	--metadata=google-logging-enabled=false"""

CONSOLE_LINK = (
    "https://console.cloud.google.com/compute/instancesDetail/zones/${ZONE}"
    "/instances/${VIRTUAL_MACHINE}?project=${GOOGLE_PROJECT_ID}"
)

END_DESCRIPTION = f"""## Welcome to Flightcrew! 🕊

${{MESSAGE}}

See your VM in the console:
{CONSOLE_LINK}

Alternatively, see your new VM in action:
```sh
# SSH into the created VM.
gcloud compute ssh ${{VIRTUAL_MACHINE}} --project ${{GOOGLE_PROJECT_ID}} --zone ${{ZONE}}
# Follow the new container's logs.
docker logs --follow $(docker ps -f name="${{IMAGE_PATH}}:${{TOWER_VERSION}}" --format="{{{{.ID}}}}")
```

Once your Tower is up, head on over to ${{APP_URL}} to see the info your Tower collected.
"""

VM_RUNNING = "✅ Your VM is available and running!"
VM_STARTING = "⏱ Your VM is still starting up."

DURATION_HINT = "must be a duration (mo, w, d, h, m, s) (e.g. 1mo, 2w, 5d3h)"


def document_filename(permission: str, platform: str) -> str:
    """Scratch file name for a role document, e.g. ``Read_provider_gcp_….yaml``."""
    stem = f"{permission}_{platform}"
    for char in "./: ":
        stem = stem.replace(char, "_")
    return f"{stem}.yaml"


class GcpInstallFlow(Flow):
    """Install the tower into a Google Cloud project."""

    name = "install"
    command = "gcp install"
    title = "Google Cloud Platform Installation"
    FLAGS = {
        "project": k.PROJECT,
        "vm": k.VIRTUAL_MACHINE,
        "platform": k.PLATFORM,
        "token": k.API_TOKEN,
        "tower-version": k.TOWER_VERSION,
        "zone": k.ZONE,
        "write": k.PERMISSIONS,
    }

    def __init__(self, *args: Any, project_hint: str | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.project_hint = project_hint

    # ── Fields ──────────────────────────────────────────────────

    def fields(self) -> list[FieldSpec]:
        app_engine = self.registry.platform_display("gae_std")

        def app_engine_write(raw: Mapping[str, str]) -> bool:
            return raw.get(k.PLATFORM) == app_engine and raw.get(k.PERMISSIONS) == k.WRITE

        return [
            FieldSpec(
                k.PROJECT, "Project ID",
                help_text="Project ID is the unique string identifier for your Google Cloud Platform project.",
                required=True,
                placeholder=self.project_hint or "project-id-1234",
                convert=self._convert_project,
            ),
            FieldSpec(
                k.VIRTUAL_MACHINE, "VM Name",
                help_text="VM Name is what the (to be installed) Flightcrew virtual machine instance will be named.",
                required=True,
                default=k.DEFAULT_VM,
                placeholder=k.DEFAULT_VM,
                char_limit=64,
                convert=self._convert_vm,
                after=(k.PROJECT,),
            ),
            FieldSpec(
                k.API_TOKEN, "API Token",
                help_text="API token is the value provided by Flightcrew to identify your organization.",
                required=True,
                placeholder="api-token",
            ),
            FieldSpec(
                k.PLATFORM, "Platform",
                help_text="Platform is which Google Cloud Provider resources Flightcrew will read in.",
                choices=tuple(self.registry.platform_displays),
                convert=self._convert_platform,
            ),
            FieldSpec(
                k.PERMISSIONS, "Permissions",
                help_text=(
                    "Permissions is whether Flightcrew will only read in your resources, "
                    "or if Flightcrew can modify (if you ask us to) your resources."
                ),
                choices=(k.READ, k.WRITE),
                convert=self._convert_permissions,
                after=(k.PLATFORM,),
            ),
            FieldSpec(
                k.GAE_MAX_VERSION_AGE, "Max Version Age",
                help_text=(
                    "The Tower (App Engine + Write) will prune old versions that are receiving "
                    "no traffic when they become older than this age (in h,m,s).\n"
                    "Leave blank to disable."
                ),
                placeholder="168h",
                convert=self._convert_max_version_age,
                visible=app_engine_write,
            ),
            FieldSpec(
                k.GAE_MAX_VERSION_COUNT, "Max Version Count",
                help_text=(
                    "The Tower (App Engine + Write) will prune old versions that are receiving "
                    "no traffic when the number of old versions exceeds this count.\n"
                    "Leave blank to disable."
                ),
                placeholder="30",
                convert=self._convert_max_version_count,
                visible=app_engine_write,
            ),
            FieldSpec(
                k.ZONE, "Zone",
                help_text=(
                    "Zone is the Google zone where the (to be installed) Flightcrew "
                    "virtual machine instance will be located."
                ),
                default=k.DEFAULT_ZONE,
                placeholder=k.DEFAULT_ZONE,
                char_limit=32,
            ),
            FieldSpec(
                k.TOWER_VERSION, "Tower Version",
                help_text=(
                    "Tower Version is the version of the Tower image that will be installed. "
                    "(recommended: `stable`)"
                ),
                default=k.DEFAULT_TOWER_VERSION,
                placeholder=k.DEFAULT_TOWER_VERSION,
                char_limit=32,
                convert=self._convert_tower_version,
            ),
            FieldSpec(
                k.SERVICE_ACCOUNT, "Service Account",
                help_text=(
                    "Service Account is the name of the (to be created) IAM service account "
                    "to run the Flightcrew Tower."
                ),
                default=k.DEFAULT_SERVICE_ACCOUNT,
                char_limit=64,
                prefill_default=True,
            ),
        ]

    def presets(self, options: Mapping[str, Any]) -> dict[str, str]:
        platform_key = option(options, "platform", k.DEFAULT_PLATFORM)
        display = self.registry.platform_display(platform_key)
        if display is None:
            raise FlowOptionError(
                f"invalid --platform flag: {', '.join(self.registry.platform_keys)}"
            )

        base_url = gcp.PROD_BASE_URL
        presets = {
            k.ZONE: option(options, "zone", k.DEFAULT_ZONE),
            k.TOWER_VERSION: option(options, "tower_version", k.DEFAULT_TOWER_VERSION),
            k.VIRTUAL_MACHINE: option(options, "vm", k.DEFAULT_VM),
            k.SERVICE_ACCOUNT: option(options, "service_account", k.DEFAULT_SERVICE_ACCOUNT),
            k.PERMISSIONS: k.WRITE if options.get("write") else k.READ,
            k.PLATFORM: display,
            k.IMAGE_PATH: gcp.IMAGE_PATH,
            k.RPC_HOST: gcp.api_host(base_url),
            k.APP_URL: gcp.app_url(base_url),
        }
        for key in (
            k.TRAFFIC_ROUTER, k.GAE_MAX_VERSION_AGE, k.GAE_MAX_VERSION_COUNT,
            k.PROJECT_OR_ORG_FLAG, k.PROJECT_OR_ORG_SLASH,
            k.IAM_ROLE_READ, k.IAM_ROLE_WRITE, k.IAM_FILE_READ, k.IAM_FILE_WRITE,
        ):
            presets[key] = ""

        project = option(options, "project")
        if project:
            presets[k.PROJECT] = project
        token = option(options, "token")
        if token:
            presets[k.API_TOKEN] = token
        return presets

    # ── Converters ──────────────────────────────────────────────

    def _convert_project(self, ctx: ConversionContext, field: InputField) -> None:
        project_id = field.value()
        try:
            org_id = gcp.organization_id(self.adapter, project_id)
        except gcp.GcloudError as e:
            ctx.log.debug("Organization lookup for %s: %s", project_id, e)
            field.set_info("no organization found")
            ctx.store.set(k.PROJECT_OR_ORG_FLAG, continuation(f"--project={project_id}"))
            ctx.store.set(k.PROJECT_OR_ORG_SLASH, f"projects/{project_id}")
            return

        field.set_info(f"found organization ID '{org_id}'")
        ctx.store.set(k.PROJECT_OR_ORG_FLAG, continuation(f"--organization={org_id}"))
        ctx.store.set(k.PROJECT_OR_ORG_SLASH, f"organizations/{org_id}")

    def _convert_vm(self, ctx: ConversionContext, field: InputField) -> None:
        project_id = ctx.field(k.PROJECT).value()
        base_url = gcp.host_base_url(project_id, field.value())
        ctx.store.set(k.RPC_HOST, gcp.api_host(base_url))
        ctx.store.set(k.APP_URL, gcp.app_url(base_url))

    def _convert_tower_version(self, ctx: ConversionContext, field: InputField) -> None:
        requested = field.value() or field.default
        try:
            version = gcp.resolve_tower_version(self.adapter, requested)
        except gcp.GcloudError as e:
            raise FieldError(str(e)) from e
        ctx.log.debug("Tower version %s resolved to %s", requested, version)
        field.set_converted(version)

    def _convert_platform(self, ctx: ConversionContext, field: InputField) -> None:
        platform = self.registry.platform_id(field.value())
        if platform is None:
            raise FieldError("invalid platform")
        field.set_converted(platform)

    def _convert_permissions(self, ctx: ConversionContext, field: InputField) -> None:
        platform_field = ctx.field(k.PLATFORM)
        platform_key = self.registry.platform_key(
            platform_field.converted or platform_field.value()
        )
        if not platform_key:
            raise FieldError("need to set platform first")

        levels = self.registry.permissions(platform_key)
        if not levels:
            raise FieldError("platform has no permissions")

        permission = field.value()
        if permission not in levels:
            raise FieldError(
                f"{permission} permissions are not supported for platform "
                f"'{platform_field.value()}'"
            )

        platform = self.registry.platforms[platform_key]["platform"]
        read = levels[k.READ]
        ctx.store.set(k.IAM_ROLE_READ, read["role"])
        ctx.store.set(k.IAM_FILE_READ, self._write_document(ctx, platform, k.READ, read["document"]))

        if permission == k.WRITE:
            write = levels[k.WRITE]
            ctx.store.set(k.TRAFFIC_ROUTER, container_env("TRAFFIC_ROUTER", platform))
            ctx.store.set(k.IAM_ROLE_WRITE, write["role"])
            ctx.store.set(
                k.IAM_FILE_WRITE, self._write_document(ctx, platform, k.WRITE, write["document"])
            )
        else:
            ctx.store.set(k.TRAFFIC_ROUTER, "")
            ctx.store.set(k.IAM_ROLE_WRITE, "")
            ctx.store.set(k.IAM_FILE_WRITE, "")

    def _convert_max_version_count(self, ctx: ConversionContext, field: InputField) -> None:
        value = field.value()
        if not value:
            return
        try:
            count = int(value)
        except ValueError:
            raise FieldError("must be a positive integer") from None
        if count < 1:
            raise FieldError("must be positive")
        field.set_converted(container_env("APPENGINE_MAX_VERSION_COUNT", str(count)))

    def _convert_max_version_age(self, ctx: ConversionContext, field: InputField) -> None:
        value = field.value()
        if not value:
            return
        try:
            age = parse_duration(value)
        except ValueError:
            raise FieldError(DURATION_HINT) from None
        if age.total_seconds() <= 0:
            raise FieldError("must be positive")
        try:
            formatted = format_hms(age)
        except ValueError as e:
            raise FieldError(str(e)) from e
        field.set_info(formatted)
        field.set_converted(container_env("APPENGINE_MAX_VERSION_AGE", formatted))

    def _write_document(
        self, ctx: ConversionContext, platform: str, permission: str, document: str
    ) -> str:
        if ctx.scratch_dir is None:
            raise RuntimeError("install flow needs a scratch directory for role documents")
        path = Path(ctx.scratch_dir) / document_filename(permission, platform)
        if path.exists():
            return str(path)
        try:
            path.write_text(document, encoding="utf-8")
        except OSError as e:
            raise FieldError(f"cannot write {path.name}: {e}") from e
        ctx.log.debug("Wrote role document %s", path)
        return str(path)

    # ── Plan ────────────────────────────────────────────────────

    def plan(self, params: Mapping[str, str]) -> PlanBuilder:
        b = PlanBuilder()
        levels = [(k.READ, params[k.IAM_ROLE_READ], params[k.IAM_FILE_READ])]
        if params[k.PERMISSIONS] == k.WRITE:
            levels.append((k.WRITE, params[k.IAM_ROLE_WRITE], params[k.IAM_FILE_WRITE]))

        for level, role, document in levels:
            bindings = {"ROLE": role, "FILE": document, "PERMISSIONS": level}
            check = b.check(
                CHECK_ROLE,
                "Check if a ${PERMISSIONS} Flightcrew IAM Role already exists or needs to be created.",
                success_message="This Flightcrew IAM role already exists.",
                failure_message="No IAM role found. Next step is to create one.",
                bindings=bindings,
            )
            b.mutate(
                CREATE_ROLE,
                "This command creates a ${PERMISSIONS} IAM role from `${FILE}` for the "
                "Flightcrew VM to access configs and monitoring data.",
                depends_on=check,
                link="https://cloud.google.com/iam/docs/understanding-custom-roles",
                bindings=bindings,
            )

        check = b.check(
            CHECK_SERVICE_ACCOUNT,
            "Check if a Flightcrew service account already exists or needs to be created.",
            success_message="The service account already exists.",
            failure_message="No service account found. Next step is to create one.",
        )
        b.mutate(
            CREATE_SERVICE_ACCOUNT,
            "This command will create a service account, and follow-up commands will "
            "attach ${PERMISSIONS} permissions.",
            depends_on=check,
            link="https://cloud.google.com/iam/docs/creating-managing-service-accounts",
        )

        for level, role, _ in levels:
            bindings = {"ROLE": role, "PERMISSIONS": level}
            check = b.check(
                CHECK_BINDING,
                "Check if IAM policy binding already exists or needs to be created.",
                success_message="Binding already exists.",
                failure_message="Binding doesn't exist. Next step is to add the binding.",
                bindings=bindings,
            )
            b.mutate(
                ATTACH_BINDING,
                "This command binds the ${PERMISSIONS} IAM role to the created service account, "
                "which grants the associated permissions to Flightcrew's service account for "
                "running the to-be-created VM.",
                depends_on=check,
                link="https://cloud.google.com/iam/docs/granting-changing-revoking-access",
                bindings=bindings,
            )

        check = b.check(
            CHECK_VM,
            "Check if a Flightcrew VM already exists or needs to be created.",
            success_message="This Flightcrew VM already exists. Nothing to install.",
            failure_message="No existing VM found. Next step is to create it.",
        )
        b.mutate(
            CREATE_VM,
            "Create a VM instance attached to Flightcrew's service account, "
            "and run the Control Tower image.",
            depends_on=check,
        )
        b.mutate(
            DISABLE_VM_LOGGING,
            "Disable the VM's builtin logger because it has a memory leak and will "
            "cause the VM to crash after 1-2 weeks.",
            depends_on=check,
            link="https://serverfault.com/questions/980569/disable-fluentd-on-on-container-optimized-os-gce",
        )
        return b

    # ── End of run ──────────────────────────────────────────────

    def end_description(self, params: Mapping[str, str], reachable: bool = False) -> str:
        message = VM_RUNNING if reachable else VM_STARTING
        return expand(END_DESCRIPTION, {**params, "MESSAGE": message})

    def flag_value(self, key: str, value: str) -> str | None:
        if key == k.PERMISSIONS:
            return "true" if value == k.WRITE else None
        if key == k.PLATFORM:
            return self.registry.platform_key(value) or None
        return value or None
