"""Logging setup for the Holarchy pages backend."""

import logging
import sys

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the ``holarchy`` logger tree once."""
    global _CONFIGURED
    root = logging.getLogger("holarchy")
    root.setLevel(level.upper())
    if _CONFIGURED:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Get a service logger; names live under ``holarchy.``."""
    if not name.startswith("holarchy"):
        name = f"holarchy.{name}"
    return logging.getLogger(name)


_sync_logger = get_logger("holarchy.sync")


def log_sync_operation(
    operation: str,
    count: int,
    success: bool,
    applied: int | None = None,
    skipped: int | None = None,
    error: str | None = None,
) -> None:
    """One summary line per push/pull/import request."""
    parts = [f"{operation.upper()}", f"items={count}"]
    if applied is not None:
        parts.append(f"applied={applied}")
    if skipped is not None:
        parts.append(f"skipped={skipped}")
    if success:
        _sync_logger.info(" | ".join(parts))
    else:
        parts.append(f"error={error}")
        _sync_logger.warning(" | ".join(parts))
