"""
VM reachability probe for the summary screen.

Unlike a check operation, the probe may run any number of times: the
summary re-probes until the freshly created VM answers on its SSH port.
Once it answered, further probes return True without running anything.
"""

from __future__ import annotations

import logging

from crewcli.adapters.base import Adapter
from crewcli.core.services.gcp import GcloudError, vm_external_ip

logger = logging.getLogger(__name__)

SSH_PORT = 22


class ReachabilityProbe:
    """Repeatable "is the VM up yet" probe."""

    def __init__(self, adapter: Adapter, project_id: str, zone: str, vm_name: str):
        self._adapter = adapter
        self._project_id = project_id
        self._zone = zone
        self._vm_name = vm_name
        self._reachable = False
        self.attempts = 0

    @property
    def reachable(self) -> bool:
        return self._reachable

    def probe(self) -> bool:
        """Probe once. Returns True once the VM accepted a connection."""
        if self._reachable:
            return True

        self.attempts += 1
        try:
            ip = vm_external_ip(self._adapter, self._project_id, self._zone, self._vm_name)
        except GcloudError as e:
            logger.debug("Probe %d: %s", self.attempts, e)
            return False
        if not ip:
            logger.debug("Probe %d: VM has no external IP yet", self.attempts)
            return False

        receipt = self._adapter.run(
            f"nc -w 1 -z {ip} {SSH_PORT}", operation_id="probe:ssh"
        )
        self._reachable = receipt.ok
        logger.debug("Probe %d: %s:%d reachable=%s", self.attempts, ip, SSH_PORT, receipt.ok)
        return self._reachable
