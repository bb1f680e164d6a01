"""
CLI configuration model — what ``crewcli.yml`` may contain.

Example::

    log_level: INFO
    log_file: ~/.crewcli/debug.log
    report_dir: ./reports
    defaults:
      install:
        project: my-project
        zone: us-west1-a
        write: true
      upgrade:
        vm: flightcrew-control-tower
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class FlowDefaults(BaseModel):
    """Preset values for one flow. Unset keys fall back to built-in defaults."""

    project: str | None = None
    zone: str | None = None
    vm: str | None = None
    tower_version: str | None = None
    platform: str | None = None
    write: bool | None = None
    token: str | None = None
    service_account: str | None = None

    def as_presets(self) -> dict[str, object]:
        """Only the keys that were actually set."""
        return self.model_dump(exclude_none=True)


class CliConfig(BaseModel):
    """Top-level configuration."""

    log_level: str | None = None
    log_file: str | None = None
    report_dir: str | None = None
    defaults: dict[str, FlowDefaults] = Field(default_factory=dict)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    def flow_defaults(self, flow: str) -> FlowDefaults:
        return self.defaults.get(flow, FlowDefaults())
