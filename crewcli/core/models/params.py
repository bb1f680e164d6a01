"""
ParameterStore — the key/value map shared by the wizard and the engine.

Flow presets and field conversion write into the store while the
operator is editing. Once the wizard submits, the store is frozen and
every template in the run is expanded from it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType


class ParameterStoreFrozen(RuntimeError):
    """Raised on any write after the store has been frozen."""


class ParameterStore(Mapping[str, str]):
    """Mapping of parameter name to string value."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})
        self._frozen = False

    # ── Mapping protocol ────────────────────────────────────────

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<ParameterStore {state} keys={sorted(self._values)}>"

    # ── Mutation ────────────────────────────────────────────────

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set(self, key: str, value: str) -> None:
        if self._frozen:
            raise ParameterStoreFrozen(f"Cannot set '{key}': parameter store is frozen")
        self._values[key] = value

    def setdefault(self, key: str, value: str) -> str:
        if key not in self._values:
            self.set(key, value)
        return self._values[key]

    def update(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            self.set(key, value)

    def freeze(self) -> Mapping[str, str]:
        """Make the store read-only and return a read-only view of it."""
        self._frozen = True
        return MappingProxyType(self._values)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)
