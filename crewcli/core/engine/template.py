"""
Template expansion — ``${NAME}`` substitution for command and description text.

Expansion is a single pass over the template: every placeholder is looked
up in the parameter mapping and replaced by its value, and the inserted
value is never scanned again. A placeholder with no value is a bug in the
flow definition, so it raises instead of being left in place.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class TemplateError(KeyError):
    """Raised when a template references a name with no value."""

    def __init__(self, names: list[str], template: str = ""):
        self.names = names
        self.template = template
        super().__init__(f"Unresolved placeholder(s): {', '.join(names)}")

    def __str__(self) -> str:
        return self.args[0]


def placeholders(template: str) -> list[str]:
    """List the distinct placeholder names in a template, in order of appearance."""
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def expand(template: str, params: Mapping[str, str]) -> str:
    """Replace every ``${NAME}`` in ``template`` with ``params[NAME]``.

    Raises:
        TemplateError: if any referenced name is missing from ``params``.
    """
    missing = [name for name in placeholders(template) if name not in params]
    if missing:
        raise TemplateError(missing, template)

    return _PLACEHOLDER_RE.sub(lambda m: str(params[m.group(1)]), template)
