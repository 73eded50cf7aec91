"""Holon graph for holarchy.

Holarchy keeps holons, links and notes, and routes every trust event
through its TrustLedger. Link creation follows the browser's behaviour:

- creating a holon under a parent links parent -> child and records a
  collaboration event of +0.05
- a manual link records a collaboration event of +0.03
- auto-relate links every unlinked ordered pair and records a system
  event of +0.01 per new link
"""

import logging
import random
import uuid
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from holarchy.inference import classify
from holarchy.storage import load_graph, save_graph
from holarchy.trust import TrustLedger
from holarchy.types import (
    Holon,
    Link,
    LinkType,
    Note,
    TrustContext,
    TrustEvent,
    TrustSignature,
    utc_now,
)

logger = logging.getLogger(__name__)

CREATED_LINK_DELTA = 0.05
MANUAL_LINK_DELTA = 0.03
AUTO_RELATE_DELTA = 0.01

# Starting graph for a fresh workspace
SEED_HOLONS = (
    ("eBliss Co-op", 0.0, 0.0, 0.3, 0.7),
    ("Supportable", 240.0, 180.0, 0.4, 0.6),
    ("Holarchy Browser", -260.0, 160.0, 0.1, 0.5),
)


class Holarchy:
    """An in-memory holon graph with its trust ledger.

    Args:
        ledger: Trust ledger to route events through; a fresh one by default.
        now_fn: Timestamp source, injectable for tests.
        id_fn: Id factory, injectable for tests.
    """

    def __init__(
        self,
        ledger: Optional[TrustLedger] = None,
        now_fn: Callable[[], str] = utc_now,
        id_fn: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._now = now_fn
        self._new_id = id_fn
        self.ledger = ledger or TrustLedger(now_fn=now_fn)
        self._holons: Dict[str, Holon] = {}
        self._links: List[Link] = []
        self._notes: List[Note] = []

    # === Lookup ===

    @property
    def holons(self) -> List[Holon]:
        return list(self._holons.values())

    @property
    def links(self) -> List[Link]:
        return list(self._links)

    def get(self, holon_id: str) -> Optional[Holon]:
        return self._holons.get(holon_id)

    def _require(self, holon_id: str) -> Holon:
        holon = self._holons.get(holon_id)
        if holon is None:
            raise ValueError(f"Unknown holon: {holon_id}")
        return holon

    def find(self, name_or_id: str) -> Optional[Holon]:
        """Resolve an id, then an exact name, then a unique id prefix."""
        if name_or_id in self._holons:
            return self._holons[name_or_id]
        for holon in self._holons.values():
            if holon.name == name_or_id:
                return holon
        matches = [h for h in self._holons.values() if h.id.startswith(name_or_id)]
        return matches[0] if len(matches) == 1 else None

    def links_from(self, holon_id: str) -> List[Link]:
        return [link for link in self._links if link.from_id == holon_id]

    def has_link(self, from_id: str, to_id: str) -> bool:
        return any(l.from_id == from_id and l.to_id == to_id for l in self._links)

    # === Holons ===

    def _add_holon(self, holon: Holon) -> Holon:
        self._holons[holon.id] = holon
        # The ledger mutates the holon's own signature object.
        holon.trust = self.ledger.register(holon.id, holon.trust)
        return holon

    def create_holon(
        self,
        name: str,
        parent_id: Optional[str] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> Holon:
        """Add a holon, optionally linked under an existing parent."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Holon name cannot be empty")
        parent = self._require(parent_id) if parent_id else None

        now = self._now()
        holon = self._add_holon(
            Holon(
                id=self._new_id(),
                name=name,
                x=float(x) if x is not None else float(round(random.random() * 400 - 200)),
                y=float(y) if y is not None else float(round(random.random() * 300 - 150)),
                created_at=now,
                trust=TrustSignature(last_update=now),
            )
        )
        logger.debug(f"Created holon {holon.id} ({holon.name})")

        if parent is not None:
            self._connect(
                parent,
                holon,
                None,
                None,
                TrustContext.COLLABORATION,
                CREATED_LINK_DELTA,
                "created link",
            )
        return holon

    def remove_holon(self, holon_id: str) -> bool:
        """Remove a holon with its links, notes and signature. Events stay logged."""
        if self._holons.pop(holon_id, None) is None:
            return False
        self._links = [l for l in self._links if holon_id not in (l.from_id, l.to_id)]
        self._notes = [n for n in self._notes if n.holon_id != holon_id]
        self.ledger.forget(holon_id)
        return True

    def toggle_pin(self, holon_id: str) -> bool:
        holon = self._require(holon_id)
        holon.pinned = not holon.pinned
        return holon.pinned

    def pinned(self) -> List[Holon]:
        return [h for h in self._holons.values() if h.pinned]

    def seed(self) -> List[Holon]:
        """Populate an empty graph with the default holons."""
        if self._holons:
            return []
        now = self._now()
        seeded = []
        for name, x, y, reputation, confidence in SEED_HOLONS:
            seeded.append(
                self._add_holon(
                    Holon(
                        id=self._new_id(),
                        name=name,
                        x=x,
                        y=y,
                        created_at=now,
                        trust=TrustSignature(
                            reputation=reputation, confidence=confidence, last_update=now
                        ),
                    )
                )
            )
        return seeded

    # === Links ===

    def _connect(
        self,
        source: Holon,
        target: Holon,
        link_type: Optional[LinkType],
        label: Optional[str],
        context: TrustContext,
        delta: float,
        reason: str,
    ) -> Link:
        link = Link(
            id=self._new_id(),
            from_id=source.id,
            to_id=target.id,
            type=link_type or classify(source.name, target.name),
            label=label,
        )
        self._links.append(link)
        self.record_trust(source.id, target.id, delta, context, reason)
        return link

    def link(
        self,
        from_id: str,
        to_id: str,
        link_type: Optional[LinkType] = None,
        label: Optional[str] = None,
    ) -> Link:
        """Manually link two holons; the type is inferred unless given."""
        source, target = self._require(from_id), self._require(to_id)
        if source.id == target.id:
            raise ValueError("Cannot link a holon to itself")
        return self._connect(
            source,
            target,
            link_type,
            label,
            TrustContext.COLLABORATION,
            MANUAL_LINK_DELTA,
            "manual link",
        )

    def auto_relate(self) -> List[Link]:
        """Link every ordered pair that is not linked yet."""
        holons = self.holons
        pairs = [
            (a, b)
            for a in holons
            for b in holons
            if a.id != b.id and not self.has_link(a.id, b.id)
        ]
        new_links = [
            self._connect(a, b, None, None, TrustContext.SYSTEM, AUTO_RELATE_DELTA, "auto relate")
            for a, b in pairs
        ]
        logger.info(f"Auto relate created {len(new_links)} links")
        return new_links

    def dominant_link_type(self, holon_id: str) -> Optional[LinkType]:
        """Most frequent outgoing link type; ties go to the earlier enum member."""
        counts = Counter(link.type for link in self.links_from(holon_id))
        if not counts:
            return None
        return max(LinkType, key=lambda t: (counts.get(t, 0), -list(LinkType).index(t)))

    # === Trust ===

    def record_trust(
        self,
        from_id: str,
        to_id: str,
        delta: float,
        context: TrustContext = TrustContext.DISCUSSION,
        reason: Optional[str] = None,
    ) -> TrustEvent:
        event = TrustEvent(
            from_id=from_id,
            to_id=to_id,
            context=TrustContext(context),
            delta=float(delta),
            reason=reason,
            timestamp=self._now(),
        )
        self.ledger.apply_event(event)
        return event

    def effective_reputation(self, holon_id: str) -> float:
        return self.ledger.effective_reputation(holon_id)

    # === Notes ===

    def add_note(self, holon_id: str, text: str) -> Note:
        self._require(holon_id)
        note = Note(id=self._new_id(), holon_id=holon_id, text=text, created_at=self._now())
        self._notes.append(note)
        return note

    def notes_for(self, holon_id: str) -> List[Note]:
        return [n for n in self._notes if n.holon_id == holon_id]

    # === Persistence ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "holons": [h.to_dict() for h in self._holons.values()],
            "links": [l.to_dict() for l in self._links],
            "notes": [n.to_dict() for n in self._notes],
            "trust_events": self.ledger.to_dict()["events"],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **kwargs) -> "Holarchy":
        graph = cls(**kwargs)
        for raw in data.get("holons", []):
            graph._add_holon(Holon.from_dict(raw))
        graph._links = [Link.from_dict(raw) for raw in data.get("links", [])]
        graph._notes = [Note.from_dict(raw) for raw in data.get("notes", [])]
        graph.ledger.load_events(data.get("trust_events", []))
        return graph

    @classmethod
    def load(cls, path: Path, **kwargs) -> "Holarchy":
        return cls.from_dict(load_graph(path), **kwargs)

    def save(self, path: Path) -> None:
        save_graph(path, self.to_dict())
