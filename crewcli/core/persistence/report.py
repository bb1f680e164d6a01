"""
Run report — flat text export of a finished run.

One block per operation, in run order: final state, description,
resolved command and captured output.  Writes are atomic (write to a
temp file, then rename) so a crash never leaves half a report behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
import textwrap
from datetime import UTC, datetime
from pathlib import Path

from crewcli.core.engine.controller import RunReport
from crewcli.core.models.operation import Operation

logger = logging.getLogger(__name__)

_RULE = "-" * 72


def render_report(
    operations: list[Operation],
    *,
    title: str = "",
    summary: RunReport | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Render the operation list as plain text."""
    generated_at = generated_at or datetime.now(UTC)
    lines: list[str] = []
    if title:
        lines.append(title)
    lines.append(f"Generated: {generated_at.isoformat(timespec='seconds')}")
    if summary is not None:
        lines.append(
            f"Status: {summary.status} "
            f"(total {summary.total}, succeeded {summary.succeeded}, failed {summary.failed}, "
            f"skipped {summary.skipped}, unstarted {summary.unstarted})"
        )

    total = len(operations)
    for op in operations:
        lines.append("")
        lines.append(_RULE)
        lines.append(f"[{op.index + 1}/{total}] {op.kind} · {op.state}")
        if op.description:
            lines.append(f"Description: {op.description}")
        if op.link:
            lines.append(f"Link: {op.link}")
        if op.depends_on is not None:
            lines.append(f"Skipped if operation {op.depends_on + 1} succeeds")
        lines.append("Command:")
        lines.append(textwrap.indent(op.command, "  "))
        if op.output.exit_code is not None:
            lines.append(f"Exit code: {op.output.exit_code} ({op.output.duration_ms}ms)")
        if op.output.message:
            lines.append(f"Message: {op.output.message}")
        if op.output.log.strip():
            lines.append("Output:")
            lines.append(textwrap.indent(op.output.log.rstrip("\n"), "  "))

    return "\n".join(lines) + "\n"


def default_report_path(report_dir: Path, flow: str, now: datetime | None = None) -> Path:
    """``<report_dir>/crewcli-<flow>-<UTC timestamp>.txt``."""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d-%H%M%S")
    return report_dir / f"crewcli-{flow}-{stamp}.txt"


def write_report(content: str, path: Path) -> Path:
    """Write a rendered report (atomic write). Returns the path written."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".report_", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to write report to %s", path)
        raise

    logger.info("Report written to %s", path)
    return path
