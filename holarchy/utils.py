"""Filesystem and environment helpers for holarchy."""

import os
from pathlib import Path

DEFAULT_BACKEND_URL = "http://localhost:3000"


def get_holarchy_home() -> Path:
    """Directory holding the graph, outbox and local page store.

    ``HOLARCHY_HOME`` overrides the default ``~/.holarchy``.
    """
    override = os.environ.get("HOLARCHY_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".holarchy"


def get_backend_url() -> str:
    return os.environ.get("HOLARCHY_BACKEND_URL", DEFAULT_BACKEND_URL).rstrip("/")
