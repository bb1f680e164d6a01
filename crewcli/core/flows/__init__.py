"""
Provisioning flows, by CLI command name.
"""

from __future__ import annotations

from crewcli.core.flows.base import Flow, FlowOptionError
from crewcli.core.flows.gcp_install import GcpInstallFlow
from crewcli.core.flows.gcp_upgrade import GcpUpgradeFlow

FLOWS: dict[str, type[Flow]] = {
    GcpInstallFlow.name: GcpInstallFlow,
    GcpUpgradeFlow.name: GcpUpgradeFlow,
}

__all__ = ["FLOWS", "Flow", "FlowOptionError", "GcpInstallFlow", "GcpUpgradeFlow"]
