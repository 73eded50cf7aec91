"""Tests for the trust ledger update rule and effective reputation."""

import pytest

from holarchy.trust import TrustLedger
from holarchy.types import TrustContext, TrustEvent, TrustSignature


def _event(delta, to_id="b", from_id="a", context=TrustContext.DISCUSSION):
    return TrustEvent(from_id=from_id, to_id=to_id, context=context, delta=delta)


class TestApplyEvent:
    def test_single_positive_event(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.0, confidence=0.5))

        sig = ledger.apply_event(_event(0.05))

        assert sig.reputation == pytest.approx(0.0125)
        assert sig.confidence == pytest.approx(0.52)
        assert sig.sources == {"a": pytest.approx(0.05)}

    def test_decay_then_weight(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.4, confidence=0.6))
        sig = ledger.apply_event(_event(-0.2))
        assert sig.reputation == pytest.approx(0.4 * 0.95 - 0.05)
        assert sig.confidence == pytest.approx(0.58)

    def test_zero_delta_leaves_confidence(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.2, confidence=0.5))
        sig = ledger.apply_event(_event(0.0))
        assert sig.confidence == pytest.approx(0.5)
        assert sig.reputation == pytest.approx(0.19)

    def test_clamped_to_bounds(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.99, confidence=0.995))
        sig = ledger.apply_event(_event(5.0))
        assert sig.reputation == 1.0
        assert sig.confidence == 1.0

        ledger.register("c", TrustSignature(reputation=-0.99, confidence=0.01))
        sig = ledger.apply_event(_event(-5.0, to_id="c"))
        assert sig.reputation == -1.0
        assert sig.confidence == 0.0

    def test_sources_accumulate_per_contributor(self, ledger):
        ledger.register("b")
        ledger.apply_event(_event(0.1, from_id="a"))
        ledger.apply_event(_event(-0.3, from_id="a"))
        sig = ledger.apply_event(_event(0.2, from_id="c"))
        assert sig.sources["a"] == pytest.approx(-0.2)
        assert sig.sources["c"] == pytest.approx(0.2)

    def test_updates_last_update(self, ledger):
        sig = ledger.register("b")
        before = sig.last_update
        ledger.apply_event(_event(0.1))
        assert sig.last_update > before

    def test_untracked_target_is_logged_only(self, ledger):
        assert ledger.apply_event(_event(0.1, to_id="ghost")) is None
        assert len(ledger.events_for("ghost")) == 1

    def test_log_keeps_raw_delta(self, ledger):
        ledger.register("b")
        ledger.apply_event(_event(7.5))
        assert ledger.events[0].delta == 7.5


class TestRegister:
    def test_clamps_initial_signature(self, ledger):
        sig = ledger.register("b", TrustSignature(reputation=3.0, confidence=-1.0))
        assert sig.reputation == 1.0
        assert sig.confidence == 0.0

    def test_existing_signature_kept(self, ledger):
        first = ledger.register("b", TrustSignature(reputation=0.3))
        second = ledger.register("b", TrustSignature(reputation=-0.9))
        assert second is first
        assert second.reputation == 0.3

    def test_forget_keeps_events(self, ledger):
        ledger.register("b")
        ledger.apply_event(_event(0.1))
        ledger.forget("b")
        assert ledger.signature("b") is None
        assert len(ledger.events) == 1


class TestEffectiveReputation:
    def test_blends_stored_and_event_mean(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.5, confidence=0.5))
        ledger.apply_event(_event(0.2))
        ledger.apply_event(_event(0.4))
        stored = ledger.signature("b").reputation
        assert ledger.effective_reputation("b") == pytest.approx(stored * 0.7 + 0.3 * 0.3)

    def test_no_events_uses_zero_mean(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.5))
        assert ledger.effective_reputation("b") == pytest.approx(0.35)

    def test_ignores_other_targets(self, ledger):
        ledger.register("b", TrustSignature(reputation=0.0))
        ledger.register("c")
        ledger.apply_event(_event(1.0, to_id="c"))
        assert ledger.effective_reputation("b") == 0.0

    def test_is_not_cached(self, ledger):
        ledger.register("b")
        ledger.apply_event(_event(0.2))
        first = ledger.effective_reputation("b")
        ledger.apply_event(_event(-0.8))
        assert ledger.effective_reputation("b") != first


class TestSerialization:
    def test_load_events_does_not_replay(self):
        source = TrustLedger()
        source.register("b")
        source.apply_event(_event(0.5))

        restored = TrustLedger()
        restored.register("b", TrustSignature(reputation=0.0))
        restored.load_events(source.to_dict()["events"])

        assert restored.signature("b").reputation == 0.0
        assert restored.events == source.events

    def test_from_dict(self):
        source = TrustLedger()
        source.apply_event(_event(0.5, to_id="nobody"))
        restored = TrustLedger.from_dict(source.to_dict())
        assert restored.events == source.events
        assert restored.signature("nobody") is None
