"""
Central data registry for static catalogs.

Loads catalogs from ``crewcli/core/data/catalogs/`` once at first access
and caches them for the process lifetime.  Flows and converters read
platform and permission data from this single source of truth.

Usage::

    from crewcli.core.data import get_registry

    registry = get_registry()
    registry.platform_display("gce")          # → "Compute Engine"
    registry.permissions("gae_std")["Write"]  # → {"role": ..., "document": ...}
"""

from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent


def _load_yaml(relative_path: str) -> dict:
    """Load a YAML mapping relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class DataRegistry:
    """Central registry for all static data catalogs.

    Each property lazily loads its YAML file on first access and caches
    the result for the lifetime of the instance.
    """

    # ── Platforms ────────────────────────────────────────────────

    @cached_property
    def platforms(self) -> dict[str, dict]:
        """Platform key → display name, platform id and permission levels."""
        data = _load_yaml("catalogs/gcp_platforms.yml")
        logger.debug("Loaded %d platform definitions", len(data))
        return data

    @property
    def platform_keys(self) -> list[str]:
        return list(self.platforms)

    @property
    def platform_displays(self) -> list[str]:
        return [p["display"] for p in self.platforms.values()]

    def platform_display(self, key: str) -> str | None:
        """Flag value (``gae_std``) → display name (``App Engine``)."""
        entry = self.platforms.get(key)
        return entry["display"] if entry else None

    def platform_id(self, display: str) -> str | None:
        """Display name → platform id passed to the tower."""
        for entry in self.platforms.values():
            if entry["display"] == display:
                return entry["platform"]
        return None

    def platform_key(self, text: str) -> str:
        """Normalize a key, display name or platform id to the key.

        Returns "" when ``text`` names no known platform.
        """
        for key, entry in self.platforms.items():
            if text in (key, entry["display"], entry["platform"]):
                return key
        return ""

    def permissions(self, key: str) -> dict[str, dict]:
        """Permission level (``Read``/``Write``) → role name and document."""
        entry = self.platforms.get(key)
        return dict(entry.get("permissions", {})) if entry else {}


# ── Module-level singleton ───────────────────────────────────────

_registry: DataRegistry | None = None


def get_registry() -> DataRegistry:
    """Return the process-level DataRegistry singleton."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = DataRegistry()
    return _registry
