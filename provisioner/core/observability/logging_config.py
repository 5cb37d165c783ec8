"""
Logging configuration — one setup call per process.

Called by the CLI root group and by ``run_server()``. Every module that
does ``logger = logging.getLogger(__name__)`` inherits it.

Level precedence:
    --debug / --verbose / --quiet  >  PROV_LOG_LEVEL  >  WARNING

A second, file-only handler is added when PROV_LOG_FILE is set; its
level comes from PROV_LOG_FILE_LEVEL (default: the console level).
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

# ── Formats ─────────────────────────────────────────────────────

_FMT_CONSOLE = "%(message)s"
_FMT_CONSOLE_INFO = "%(asctime)s [%(name)s] %(message)s"
_FMT_DETAILED = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d  %(message)s"
_DATEFMT_SHORT = "%H:%M:%S"
_DATEFMT_FULL = "%Y-%m-%d %H:%M:%S"

# Libraries that flood INFO with request lines
_NOISY_LOGGERS = ("werkzeug", "urllib3")


def resolve_level(flag_level: str | None, env: Mapping[str, str] | None = None) -> str:
    """Pick the console level from an explicit flag or the environment."""
    if flag_level:
        return flag_level
    env = os.environ if env is None else env
    return env.get("PROV_LOG_LEVEL") or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: Console level name.
        log_file: Optional log file path.
        log_file_level: Level for the file (default: ``level``).
        quiet_third_party: Hold noisy libraries at WARNING unless DEBUG.
    """
    console_level = _parse_level(level)
    if console_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DETAILED, _DATEFMT_SHORT
    elif console_level <= logging.INFO:
        fmt, datefmt = _FMT_CONSOLE_INFO, _DATEFMT_SHORT
    else:
        fmt, datefmt = _FMT_CONSOLE, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FMT_DETAILED, datefmt=_DATEFMT_FULL))
        root.addHandler(handler)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def setup_from_env(flag_level: str | None = None, env: Mapping[str, str] | None = None) -> str:
    """``setup_logging()`` with PROV_* environment defaults; returns the level used."""
    env = os.environ if env is None else env
    level = resolve_level(flag_level, env)
    setup_logging(
        level=level,
        log_file=env.get("PROV_LOG_FILE") or None,
        log_file_level=env.get("PROV_LOG_FILE_LEVEL") or None,
    )
    return level


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
