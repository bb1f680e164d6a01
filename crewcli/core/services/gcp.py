"""
Read-only Google Cloud lookups used while converting wizard fields.

Every lookup runs through an Adapter so tests can script gcloud's
answers with a MockAdapter.  Lookups raise ``GcloudError`` when the
answer cannot be determined; converters turn that into a field error.
"""

from __future__ import annotations

import csv
import hashlib
import io
import logging
import re

from crewcli.adapters.base import Adapter

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════

CLI_NAME = "crewcli"

IMAGE_PATH = "us-west1-docker.pkg.dev/flightcrew-artifacts/client/tower"
VERSION_RE = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+")

PROD_BASE_URL = "flightcrew.io"
DEV_BASE_URL = "flightcrew.dev"
_DEV_PROJECT_MD5 = "fab25c5e9d4d70830074eff996da8ba4"

GCLOUD_INSTALL_HINT = """The "gcloud" CLI tool is a pre-requisite to run this command.

If you haven't yet, please install the tool: https://cloud.google.com/sdk/docs/install

If you already have, please add it to your path:
  export PATH=<where it is>:$PATH
"""


class GcloudError(Exception):
    """A gcloud lookup could not produce an answer."""


# ═══════════════════════════════════════════════════════════════════
#  Environment
# ═══════════════════════════════════════════════════════════════════


def has_gcloud(adapter: Adapter) -> bool:
    """Check whether ``gcloud`` is on the PATH."""
    return adapter.run("which gcloud", operation_id="lookup:gcloud").ok


def default_project(adapter: Adapter) -> str | None:
    """First project id the active gcloud account can see, if any."""
    receipt = adapter.run(
        "gcloud projects list --format='csv(PROJECT_ID)'",
        operation_id="lookup:projects",
    )
    if not receipt.ok:
        logger.debug("gcloud projects list failed: %s", receipt.output.strip())
        return None

    try:
        return next(_csv_column(receipt.output, "project_id"), None)
    except GcloudError as e:
        logger.debug("Cannot parse project list: %s", e)
        return None


# ═══════════════════════════════════════════════════════════════════
#  Lookups
# ═══════════════════════════════════════════════════════════════════


def organization_id(adapter: Adapter, project_id: str) -> str:
    """Organization that owns ``project_id``.

    Raises:
        GcloudError: if the lookup fails or the project has no organization.
    """
    receipt = adapter.run(
        f"gcloud projects get-ancestors {project_id} | awk '/organization/ {{print $1}}'",
        operation_id="lookup:organization",
    )
    if not receipt.ok:
        raise GcloudError(f"gcloud projects get-ancestors: exit {receipt.exit_code}")

    org_id = receipt.output.strip(" \n\t")
    if not org_id:
        raise GcloudError("not found: Google organization ID")
    return org_id


def resolve_tower_version(adapter: Adapter, version: str) -> str:
    """Resolve a tower image tag (``stable``, ``latest``, ``1.2.3``) to ``x.y.z``.

    Lists the registry's tags, finds the image carrying ``version`` and
    returns its ``x.y.z`` tag.  When the registry cannot be listed, a
    version already in ``x.y.z`` form is accepted as is.

    Raises:
        GcloudError: if the version cannot be resolved.
    """
    receipt = adapter.run(
        f'gcloud artifacts docker tags list {IMAGE_PATH} --format="csv(tag,version)"',
        operation_id="lookup:tower-version",
    )
    if not receipt.ok:
        if VERSION_RE.fullmatch(version):
            return version
        raise GcloudError("want `x.x.x` format: failed to lookup image")

    images: dict[str, list[str]] = {}
    for row in _csv_rows(receipt.output, ("tag", "version")):
        images.setdefault(row["version"], []).append(row["tag"])

    return _pick_version(images, version)


def _pick_version(images: dict[str, list[str]], version: str) -> str:
    """Pick the ``x.y.z`` tag of the image tagged ``version``."""
    tags = next((t for t in images.values() if version in t), None)
    if tags is None:
        raise GcloudError(f"unable to find tower version: {version}")

    if VERSION_RE.fullmatch(version):
        return version
    for tag in tags:
        if VERSION_RE.fullmatch(tag):
            return tag
    raise GcloudError(f"no valid tower version tag found from {version}")


def vm_external_ip(adapter: Adapter, project_id: str, zone: str, vm_name: str) -> str:
    """External IP of a VM, "" when the VM exists but has none (stopped).

    Raises:
        GcloudError: if the listing fails or no such VM exists.
    """
    receipt = adapter.run(
        f'gcloud compute instances list --format="csv(NAME,EXTERNAL_IP,STATUS)" '
        f'--project={project_id} --zones={zone} --filter="name={vm_name}"',
        operation_id="lookup:vm",
    )
    if not receipt.ok:
        raise GcloudError(f"gcloud compute instances list: exit {receipt.exit_code}")

    try:
        for row in _csv_rows(receipt.output, ("name", "external_ip")):
            if row["name"] == vm_name:
                return row["external_ip"]
    except GcloudError:
        pass
    raise GcloudError("no VM with this name and location")


def host_base_url(project_id: str, vm_name: str) -> str:
    """Pick the API base domain for a tower.

    Only a VM with ``dev`` in its name inside the internal dev project
    talks to the dev environment.
    """
    if "dev" not in vm_name:
        return PROD_BASE_URL
    digest = hashlib.md5(project_id.encode("utf-8")).hexdigest()  # noqa: S324
    logger.debug("project hash is %s", digest)
    return DEV_BASE_URL if digest == _DEV_PROJECT_MD5 else PROD_BASE_URL


def api_host(base_url: str) -> str:
    return f"api.{base_url}"


def app_url(base_url: str) -> str:
    return f"https://app.{base_url}"


# ═══════════════════════════════════════════════════════════════════
#  CSV helpers
# ═══════════════════════════════════════════════════════════════════


def _csv_rows(text: str, required: tuple[str, ...]):
    """Yield rows of gcloud CSV output as dicts keyed by lowercase header."""
    reader = csv.reader(io.StringIO(text))
    try:
        headers = [h.strip().lower() for h in next(reader)]
    except StopIteration:
        raise GcloudError("empty csv output") from None

    missing = [name for name in required if name not in headers]
    if missing:
        raise GcloudError(f"missing csv columns {missing} in {headers}")

    for record in reader:
        if not record:
            continue
        yield {h: (record[i] if i < len(record) else "") for i, h in enumerate(headers)}


def _csv_column(text: str, column: str):
    for row in _csv_rows(text, (column,)):
        if row[column]:
            yield row[column]
