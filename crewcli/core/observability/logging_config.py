"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  CREWCLI_LOG_LEVEL env var  >  config log_level  >  WARNING

File output is scoped: ``debug_log()`` attaches a file handler for the
duration of a session and detaches it on exit.  The path comes from
``--log-file``, CREWCLI_LOG_FILE or the ``log_file`` config key.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

# WARNING level: minimal, no noise
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")

ENV_LOG_LEVEL = "CREWCLI_LOG_LEVEL"
ENV_LOG_FILE = "CREWCLI_LOG_FILE"
SESSION_LOGGER = "crewcli.session"


def setup_logging(level: str = "WARNING", quiet_third_party: bool = True) -> None:
    """Configure the console handler of the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def resolve_level(flag_level: str | None, config_level: str | None = None) -> str:
    """Pick the console level: CLI flag, env var, config, then WARNING."""
    return flag_level or os.environ.get(ENV_LOG_LEVEL) or config_level or "WARNING"


def resolve_log_file(flag_path: str | None, config_path: str | None = None) -> str | None:
    """Pick the log file: CLI flag, then env var, then config."""
    return flag_path or os.environ.get(ENV_LOG_FILE) or config_path or None


@contextmanager
def debug_log(
    path: str | Path | None,
    level: str = "DEBUG",
) -> Iterator[logging.Logger]:
    """Attach a file handler for the duration of a session.

    Yields the session logger that the wizard and run controller write
    to.  With no path the logger just inherits the console setup.
    """
    session = logging.getLogger(SESSION_LOGGER)
    if not path:
        yield session
        return

    file_level = _parse_level(level)
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(file_level)
    handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))

    root = logging.getLogger()
    previous_level = root.level
    root.addHandler(handler)
    root.setLevel(min(previous_level or logging.WARNING, file_level))
    session.debug("Debug log opened: %s", path)
    try:
        yield session
    finally:
        session.debug("Debug log closed")
        root.removeHandler(handler)
        root.setLevel(previous_level)
        handler.close()


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
