"""Trust ledger for holarchy.

The ledger is the only writer of reputation and confidence. It keeps one
TrustSignature per holon plus an append-only log of every TrustEvent it
has been handed. The log is lossless; only the derived signatures are
clamped.
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional

from holarchy.types import TrustEvent, TrustSignature, clamp, utc_now

logger = logging.getLogger(__name__)

# Incremental update constants
TRUST_DECAY = 0.05
TRUST_EVENT_WEIGHT = 0.25
CONFIDENCE_STEP = 0.02

# Display blend for effective reputation
STORED_REPUTATION_WEIGHT = 0.7
EVENT_MEAN_WEIGHT = 0.3


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


class TrustLedger:
    """Owns trust signatures and the trust event log.

    Args:
        now_fn: Timestamp source for ``last_update``; injectable for tests.
    """

    def __init__(self, now_fn: Callable[[], str] = utc_now):
        self._now = now_fn
        self._signatures: Dict[str, TrustSignature] = {}
        self._events: List[TrustEvent] = []

    # === Signatures ===

    def register(self, holon_id: str, signature: Optional[TrustSignature] = None) -> TrustSignature:
        """Start tracking a holon. An existing signature is left alone."""
        if holon_id not in self._signatures:
            sig = signature or TrustSignature(last_update=self._now())
            sig.reputation = clamp(sig.reputation, -1.0, 1.0)
            sig.confidence = clamp(sig.confidence, 0.0, 1.0)
            self._signatures[holon_id] = sig
        return self._signatures[holon_id]

    def forget(self, holon_id: str) -> None:
        """Drop a holon's signature. Its events stay in the log."""
        self._signatures.pop(holon_id, None)

    def signature(self, holon_id: str) -> Optional[TrustSignature]:
        return self._signatures.get(holon_id)

    # === Events ===

    @property
    def events(self) -> List[TrustEvent]:
        return list(self._events)

    def events_for(self, holon_id: str) -> List[TrustEvent]:
        """Events whose target is ``holon_id``, in log order."""
        return [e for e in self._events if e.to_id == holon_id]

    def apply_event(self, event: TrustEvent) -> Optional[TrustSignature]:
        """Record an event and fold it into the target's signature.

        rep' = clamp(rep * (1 - decay) + delta * weight, -1, 1)
        conf' = clamp(conf + sign(delta) * step, 0, 1)

        Returns the updated signature, or None when the target is not
        tracked (the event is still logged).
        """
        self._events.append(event)

        sig = self._signatures.get(event.to_id)
        if sig is None:
            logger.debug(f"Trust event for untracked holon {event.to_id}; logged only")
            return None

        sig.reputation = clamp(
            sig.reputation * (1 - TRUST_DECAY) + event.delta * TRUST_EVENT_WEIGHT, -1.0, 1.0
        )
        sig.confidence = clamp(sig.confidence + _sign(event.delta) * CONFIDENCE_STEP, 0.0, 1.0)
        sig.sources[event.from_id] = sig.sources.get(event.from_id, 0.0) + event.delta
        sig.last_update = self._now()
        return sig

    def effective_reputation(self, holon_id: str) -> float:
        """Softened display reputation, recomputed from the full event history.

        Blends the stored reputation with the mean delta of incoming events
        (0 when there are none). Never cached and never written back.
        """
        sig = self._signatures.get(holon_id)
        stored = sig.reputation if sig else 0.0
        deltas = [e.delta for e in self._events if e.to_id == holon_id]
        mean = math.fsum(deltas) / len(deltas) if deltas else 0.0
        return clamp(stored * STORED_REPUTATION_WEIGHT + mean * EVENT_MEAN_WEIGHT, -1.0, 1.0)

    # === Serialization ===

    def to_dict(self) -> Dict[str, Any]:
        return {"events": [e.to_dict() for e in self._events]}

    def load_events(self, raw_events: List[Dict[str, Any]]) -> None:
        """Restore the event log without replaying it into signatures."""
        self._events = [TrustEvent.from_dict(e) for e in raw_events]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], now_fn: Callable[[], str] = utc_now) -> "TrustLedger":
        ledger = cls(now_fn=now_fn)
        ledger.load_events(data.get("events", []))
        return ledger
