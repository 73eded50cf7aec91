"""
Shared types for holarchy.

The graph vocabulary (holons, links, notes, trust signatures and trust
events) lives here, together with the timestamp helpers used by both the
graph and the page store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class ParseDatetimeError(ValueError):
    """Structured parse failure for ISO datetime strings."""

    def __init__(self, value: Any, cause: Exception):
        super().__init__(f"Invalid ISO datetime string: {value!r}")
        self.value = value
        self.cause = cause


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string into an aware UTC datetime.

    Naive values are taken to be UTC. Raises ParseDatetimeError on garbage.
    """
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(str(s).replace("Z", "+00:00"))
    except (TypeError, ValueError) as exc:
        raise ParseDatetimeError(s, exc) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime(dt: datetime) -> str:
    """Canonical storage form: UTC, microsecond precision.

    Every stored timestamp uses this form so that string order and
    chronological order agree.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def normalize_timestamp(s: Optional[str]) -> Optional[str]:
    """Parse and re-emit a timestamp in canonical form (None passes through)."""
    dt = parse_datetime(s)
    return format_datetime(dt) if dt else None


def advance_timestamp(now: str, previous: Optional[str]) -> str:
    """Return ``now``, or one microsecond past ``previous`` if now is not later."""
    if previous is None:
        return now
    prev_dt = parse_datetime(previous)
    now_dt = parse_datetime(now)
    if now_dt > prev_dt:
        return format_datetime(now_dt)
    return format_datetime(prev_dt + timedelta(microseconds=1))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# === Enums ===


class LinkType(str, Enum):
    """Relationship kinds between holons, in precedence order."""

    PARENT = "parent"
    DEPENDS = "depends"
    INSPIRED = "inspired"
    CHILD = "child"


class TrustContext(str, Enum):
    """Where a trust event came from."""

    DISCUSSION = "discussion"
    COLLABORATION = "collaboration"
    ASSIST = "assist"
    VOTE = "vote"
    SYSTEM = "system"


# === Trust ===

DEFAULT_REPUTATION = 0.0
DEFAULT_CONFIDENCE = 0.5


@dataclass
class TrustSignature:
    """Derived reputation state for one holon.

    reputation is kept in [-1, 1] and confidence in [0, 1]. ``sources``
    maps contributor holon ids to their cumulative signed contribution.
    """

    reputation: float = DEFAULT_REPUTATION
    confidence: float = DEFAULT_CONFIDENCE
    last_update: str = field(default_factory=utc_now)
    sources: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reputation": self.reputation,
            "confidence": self.confidence,
            "last_update": self.last_update,
            "sources": dict(self.sources),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TrustSignature":
        if not data:
            return cls()
        return cls(
            reputation=clamp(float(data.get("reputation", DEFAULT_REPUTATION)), -1.0, 1.0),
            confidence=clamp(float(data.get("confidence", DEFAULT_CONFIDENCE)), 0.0, 1.0),
            last_update=data.get("last_update") or utc_now(),
            sources={str(k): float(v) for k, v in (data.get("sources") or {}).items()},
        )


@dataclass(frozen=True)
class TrustEvent:
    """An immutable signed contribution from one holon toward another."""

    from_id: str
    to_id: str
    context: TrustContext
    delta: float
    reason: Optional[str] = None
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_id": self.from_id,
            "to_id": self.to_id,
            "context": self.context.value,
            "delta": self.delta,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustEvent":
        return cls(
            from_id=data["from_id"],
            to_id=data["to_id"],
            context=TrustContext(data.get("context", TrustContext.SYSTEM.value)),
            delta=float(data["delta"]),
            reason=data.get("reason"),
            timestamp=data.get("timestamp") or utc_now(),
        )


# === Graph ===


@dataclass
class Avatar:
    default: Optional[str] = None
    alts: List[str] = field(default_factory=list)


@dataclass
class Holon:
    """A graph node with its own trust signature."""

    id: str
    name: str
    x: float = 0.0
    y: float = 0.0
    created_at: str = field(default_factory=utc_now)
    pinned: bool = False
    avatar: Avatar = field(default_factory=Avatar)
    trust: TrustSignature = field(default_factory=TrustSignature)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "created_at": self.created_at,
            "pinned": self.pinned,
            "avatar": {"default": self.avatar.default, "alts": list(self.avatar.alts)},
            "trust": self.trust.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holon":
        avatar = data.get("avatar") or {}
        return cls(
            id=data["id"],
            name=data["name"],
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            created_at=data.get("created_at") or utc_now(),
            pinned=bool(data.get("pinned", False)),
            avatar=Avatar(default=avatar.get("default"), alts=list(avatar.get("alts") or [])),
            trust=TrustSignature.from_dict(data.get("trust")),
        )


@dataclass(frozen=True)
class Link:
    """A typed, directed relationship between two holons."""

    id: str
    from_id: str
    to_id: str
    type: LinkType
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "type": self.type.value,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Link":
        return cls(
            id=data["id"],
            from_id=data["from_id"],
            to_id=data["to_id"],
            type=LinkType(data["type"]),
            label=data.get("label"),
        )


@dataclass
class Note:
    """Free text attached to a holon."""

    id: str
    holon_id: str
    text: str
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "holon_id": self.holon_id,
            "text": self.text,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=data["id"],
            holon_id=data["holon_id"],
            text=data.get("text", ""),
            created_at=data.get("created_at") or utc_now(),
        )
