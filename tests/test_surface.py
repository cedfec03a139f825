"""Tests for the disable/explain surface."""

from guardflow.gates import Gate, GateChain, GateStatus
from guardflow.state import Activation, FlowState
from guardflow.surface import (
    Explanation,
    derive_disabled,
    derive_explanation,
    derive_retry_available,
)


def chain(**kwargs):
    return GateChain([Gate("eligibility", check=lambda: GateStatus.UNRESOLVED, **kwargs)])


def pending(**kwargs):
    return Activation(lifetime_id="abc", state=FlowState.PENDING, pending_index=0, **kwargs)


class TestDeriveDisabled:
    """Test when the trigger control is disabled."""

    def test_inactive_is_enabled(self):
        assert derive_disabled(Activation(), chain()) is False

    def test_blocked_is_disabled(self):
        act = Activation(state=FlowState.BLOCKED, pending_index=0)
        assert derive_disabled(act, chain()) is True

    def test_pending_async_gate_is_disabled(self):
        assert derive_disabled(pending(), chain(is_async=True)) is True

    def test_pending_sync_gate_is_enabled(self):
        assert derive_disabled(pending(), chain()) is False

    def test_transient_failure_is_disabled(self):
        assert derive_disabled(pending(retryable=True), chain()) is True

    def test_interrupting_gate_follows_panel(self):
        """Test the control re-enables once the panel is dismissed."""
        gates = chain(is_async=True, interrupts=True)
        assert derive_disabled(pending(panel_open=True), gates) is True
        assert derive_disabled(pending(panel_open=False), gates) is False


class TestDeriveExplanation:
    """Test explanation affordance."""

    def test_none_unless_blocked(self):
        assert derive_explanation(Activation(), chain()) is None
        assert derive_explanation(pending(), chain()) is None

    def test_blocked_explanation(self):
        gates = chain(title="Not available in your region", learn_more_url="https://example.com/why")
        act = Activation(state=FlowState.BLOCKED, pending_index=0, block_message="Not here")

        explanation = derive_explanation(act, gates)
        assert explanation == Explanation(
            title="Not available in your region",
            message="Not here",
            learn_more_url="https://example.com/why",
        )
        assert explanation.kind == "blocked"

    def test_title_falls_back_to_gate_id(self):
        gates = chain(blocked_message="Default reason")
        act = Activation(state=FlowState.BLOCKED, pending_index=0)

        explanation = derive_explanation(act, gates)
        assert explanation.title == "Eligibility"
        assert explanation.message == "Default reason"

    def test_to_dict_omits_missing_link(self):
        data = Explanation(title="t", message="m").to_dict()
        assert data == {"title": "t", "message": "m", "kind": "blocked"}


class TestDeriveRetry:
    def test_retry_only_when_pending_and_retryable(self):
        assert derive_retry_available(pending(retryable=True)) is True
        assert derive_retry_available(pending()) is False
        assert derive_retry_available(Activation(retryable=True)) is False
