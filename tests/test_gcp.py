"""
Tests for the read-only gcloud lookups and the reachability probe.
"""

import pytest

from crewcli.adapters.mock import MockAdapter
from crewcli.core.services import gcp
from crewcli.core.services.probe import ReachabilityProbe

TAGS = (
    "TAG,VERSION\n"
    "stable,sha256:aaa\n"
    "1.4.2,sha256:aaa\n"
    "latest,sha256:bbb\n"
    "1.5.0,sha256:bbb\n"
    "nightly,sha256:ccc\n"
)

VMS = (
    "NAME,EXTERNAL_IP,STATUS\n"
    "flightcrew-control-tower,34.1.2.3,RUNNING\n"
    "stopped-tower,,TERMINATED\n"
)


# ── Tower Version Tests ──────────────────────────────────────────────


class TestResolveTowerVersion:
    def _mock(self) -> MockAdapter:
        mock = MockAdapter()
        mock.set_response("tags list", output=TAGS)
        return mock

    @pytest.mark.parametrize(
        "requested, expected",
        [("stable", "1.4.2"), ("latest", "1.5.0"), ("1.4.2", "1.4.2"), ("1.5.0", "1.5.0")],
    )
    def test_resolves(self, requested, expected):
        assert gcp.resolve_tower_version(self._mock(), requested) == expected

    def test_unknown_tag(self):
        with pytest.raises(gcp.GcloudError, match="unable to find tower version: 9.9.9"):
            gcp.resolve_tower_version(self._mock(), "9.9.9")

    def test_tag_without_version(self):
        with pytest.raises(gcp.GcloudError, match="no valid tower version tag found from nightly"):
            gcp.resolve_tower_version(self._mock(), "nightly")

    def test_lookup_failure_accepts_exact_version(self):
        mock = MockAdapter(default_exit_code=1)
        assert gcp.resolve_tower_version(mock, "2.0.1") == "2.0.1"

    def test_lookup_failure_rejects_alias(self):
        mock = MockAdapter(default_exit_code=1)
        with pytest.raises(gcp.GcloudError, match="want `x.x.x` format"):
            gcp.resolve_tower_version(mock, "stable")


# ── VM Lookup Tests ──────────────────────────────────────────────────


class TestVmExternalIp:
    def test_running_vm(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        ip = gcp.vm_external_ip(mock, "proj", "us-central1-c", "flightcrew-control-tower")
        assert ip == "34.1.2.3"
        assert '--filter="name=flightcrew-control-tower"' in mock.commands[0]
        assert "--project=proj" in mock.commands[0]

    def test_stopped_vm(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        assert gcp.vm_external_ip(mock, "proj", "zone", "stopped-tower") == ""

    def test_missing_vm(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        with pytest.raises(gcp.GcloudError, match="no VM with this name and location"):
            gcp.vm_external_ip(mock, "proj", "zone", "other")

    def test_empty_listing(self):
        mock = MockAdapter()
        mock.set_response("instances list", output="")
        with pytest.raises(gcp.GcloudError):
            gcp.vm_external_ip(mock, "proj", "zone", "vm")

    def test_lookup_failure(self):
        with pytest.raises(gcp.GcloudError):
            gcp.vm_external_ip(MockAdapter(default_exit_code=1), "proj", "zone", "vm")


# ── Project Lookup Tests ─────────────────────────────────────────────


class TestProjectLookups:
    def test_organization_found(self):
        mock = MockAdapter()
        mock.set_response("get-ancestors", output="  123456\n")
        assert gcp.organization_id(mock, "proj") == "123456"

    def test_no_organization(self):
        mock = MockAdapter()
        mock.set_response("get-ancestors", output="\n")
        with pytest.raises(gcp.GcloudError, match="organization"):
            gcp.organization_id(mock, "proj")

    def test_default_project(self):
        mock = MockAdapter()
        mock.set_response("projects list", output="PROJECT_ID\nfirst-proj\nsecond-proj\n")
        assert gcp.default_project(mock) == "first-proj"

    def test_default_project_failure(self):
        assert gcp.default_project(MockAdapter(default_exit_code=1)) is None

    def test_has_gcloud(self):
        mock = MockAdapter()
        mock.set_failure("which gcloud")
        assert gcp.has_gcloud(mock) is False
        assert gcp.has_gcloud(MockAdapter()) is True


# ── Host Tests ───────────────────────────────────────────────────────


class TestHosts:
    @pytest.mark.parametrize(
        "project, vm",
        [("", ""), ("", "something-dev"), ("some-project", "something-dev"), ("yay-yay-yay", "something-dev")],
    )
    def test_prod_host(self, project, vm):
        assert gcp.api_host(gcp.host_base_url(project, vm)) == "api.flightcrew.io"

    def test_app_url(self):
        assert gcp.app_url("flightcrew.io") == "https://app.flightcrew.io"


# ── Probe Tests ──────────────────────────────────────────────────────


class TestReachabilityProbe:
    def test_reachable(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        mock.set_response("nc -w 1 -z 34.1.2.3 22", exit_code=0)
        probe = ReachabilityProbe(mock, "proj", "zone", "flightcrew-control-tower")
        assert probe.probe() is True
        assert probe.reachable

    def test_repeatable_until_reachable(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        mock.set_failure("nc -w")
        probe = ReachabilityProbe(mock, "proj", "zone", "flightcrew-control-tower")
        assert probe.probe() is False
        assert probe.probe() is False
        assert probe.attempts == 2

        mock.reset()
        mock.set_response("instances list", output=VMS)
        assert probe.probe() is True
        # Once reached, no more commands are run.
        calls = mock.call_count
        assert probe.probe() is True
        assert mock.call_count == calls

    def test_stopped_vm_not_reachable(self):
        mock = MockAdapter()
        mock.set_response("instances list", output=VMS)
        probe = ReachabilityProbe(mock, "proj", "zone", "stopped-tower")
        assert probe.probe() is False
        assert not any(c.startswith("nc") for c in mock.commands)
