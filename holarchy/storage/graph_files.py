"""Graph snapshot file for holarchy.

The holon graph is small and always loaded whole, so it is kept as one
JSON document with a section per collection.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from .base import StorageError
from .flat_files import write_json_atomic

logger = logging.getLogger(__name__)

GRAPH_SECTIONS = ("holons", "links", "notes", "trust_events")


def load_graph(path: Path) -> Dict[str, Any]:
    """Read a graph snapshot. A missing file is an empty graph."""
    path = Path(path)
    if not path.exists():
        return {section: [] for section in GRAPH_SECTIONS}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Graph file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise StorageError(f"Cannot read {path}: {e}") from e
    for section in GRAPH_SECTIONS:
        data.setdefault(section, [])
    return data


def save_graph(path: Path, data: Dict[str, Any]) -> None:
    """Write a graph snapshot atomically."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        write_json_atomic(path, data)
    except OSError as e:
        raise StorageError(f"Cannot write {path}: {e}") from e
    logger.debug(f"Saved graph to {path}")
