"""
Parameter store keys shared by the GCP flows.

Templates reference a key ``K`` as ``${K}``.
"""

from __future__ import annotations

# ── Operator-facing fields ──────────────────────────────────────

PROJECT = "GOOGLE_PROJECT_ID"
TOWER_VERSION = "TOWER_VERSION"
ZONE = "ZONE"
VIRTUAL_MACHINE = "VIRTUAL_MACHINE"
API_TOKEN = "API_TOKEN"
SERVICE_ACCOUNT = "SERVICE_ACCOUNT"
PERMISSIONS = "PERMISSIONS"
PLATFORM = "PLATFORM"
GAE_MAX_VERSION_COUNT = "GAE_MAX_VERSION_COUNT"
GAE_MAX_VERSION_AGE = "GAE_MAX_VERSION_AGE"

# ── Derived during conversion ───────────────────────────────────

IAM_ROLE_READ = "IAM_ROLE_READ"
IAM_ROLE_WRITE = "IAM_ROLE_WRITE"
IAM_FILE_READ = "IAM_FILE_READ"
IAM_FILE_WRITE = "IAM_FILE_WRITE"
TRAFFIC_ROUTER = "TRAFFIC_ROUTER"
PROJECT_OR_ORG_FLAG = "PROJECT_OR_ORG_FLAG"
PROJECT_OR_ORG_SLASH = "PROJECT_OR_ORG_SLASH"
RPC_HOST = "RPC_HOST"
APP_URL = "APP_URL"
IMAGE_PATH = "IMAGE_PATH"
VIRTUAL_MACHINE_IP = "VIRTUAL_MACHINE_IP"

# ── Permission levels ───────────────────────────────────────────

READ = "Read"
WRITE = "Write"

# ── Built-in defaults ───────────────────────────────────────────

DEFAULT_VM = "flightcrew-control-tower"
DEFAULT_ZONE = "us-central1-c"
DEFAULT_TOWER_VERSION = "stable"
DEFAULT_SERVICE_ACCOUNT = "flightcrew-runner"
DEFAULT_PLATFORM = "gae_std"
