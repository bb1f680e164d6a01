"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from crewcli.adapters.mock import MockAdapter
from crewcli.core.engine.plan import PlanBuilder
from crewcli.core.models.params import ParameterStore


@pytest.fixture
def mock_adapter() -> MockAdapter:
    """A mock adapter where every command succeeds."""
    return MockAdapter()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for role documents."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return scratch


@pytest.fixture
def simple_store() -> ParameterStore:
    return ParameterStore({"P": "x"})


@pytest.fixture
def check_mutate_plan() -> PlanBuilder:
    """``[check "A", mutate "B" skipped by the check]``."""
    b = PlanBuilder()
    check = b.check("A", success_message="A exists", failure_message="A missing")
    b.mutate("B", depends_on=check)
    return b
