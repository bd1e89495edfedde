"""
Logging configuration — central setup for the CLI entrypoint.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  DEBUG=1  >  DOTBOOT_LOG_LEVEL env var  >  INFO (default)

Optional file output via DOTBOOT_LOG_FILE / DOTBOOT_LOG_FILE_LEVEL env vars.
"""

from __future__ import annotations

import logging
import os
import sys

# ── Format strings ──────────────────────────────────────────────

# Every console line carries a timestamp and a level
_FMT_CONSOLE = "[%(asctime)s] [%(levelname)s] %(message)s"
_DATEFMT_CONSOLE = "%Y-%m-%d %H:%M:%S"

# DEBUG level: full diagnostic with module:line
_FMT_DEBUG = "[%(asctime)s] [%(levelname)s] %(name)s:%(lineno)d — %(message)s"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: dict[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags and the environment."""
    env = os.environ if environ is None else environ
    if debug or env.get("DEBUG") == "1":
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env.get("DOTBOOT_LOG_LEVEL", "INFO")


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    fmt = _FMT_DEBUG if numeric_level <= logging.DEBUG else _FMT_CONSOLE

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=_DATEFMT_CONSOLE))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.INFO
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
