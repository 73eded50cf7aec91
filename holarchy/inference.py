"""Relationship inference between holons.

Classifies the link type for a pair of holon names using fixed keyword
heuristics. Pure functions, no state.

Rules, first match wins:

1. one name contains the other -> parent
2. either name mentions infrastructure vocabulary -> depends
3. either name mentions creative vocabulary -> inspired
4. otherwise -> child
"""

from __future__ import annotations

from holarchy.types import LinkType

DEPENDS_KEYWORDS = ("support", "base", "foundation", "server", "client", "infra", "core")
INSPIRED_KEYWORDS = ("idea", "vision", "design", "concept", "art", "avatar")


def _mentions(name: str, keywords: tuple[str, ...]) -> bool:
    return any(word in name for word in keywords)


def classify(a: str, b: str) -> LinkType:
    """Infer the relationship type between two holon names (case-insensitive)."""
    first, second = a.lower(), b.lower()

    # Substring containment is symmetric, so argument order never matters here.
    if first in second or second in first:
        return LinkType.PARENT
    if _mentions(first, DEPENDS_KEYWORDS) or _mentions(second, DEPENDS_KEYWORDS):
        return LinkType.DEPENDS
    if _mentions(first, INSPIRED_KEYWORDS) or _mentions(second, INSPIRED_KEYWORDS):
        return LinkType.INSPIRED
    return LinkType.CHILD
