"""Integration tests for the send review flow."""

import pytest

from guardflow.collaborators import NotificationSink, NotificationType
from guardflow.config import FlowConfig
from guardflow.exceptions import ChallengeFailed, TransientGateFailure
from guardflow.flows import SendFlow
from guardflow.flows.send import READONLY_MESSAGE
from guardflow.state import FlowState
from guardflow.submission import (
    Account,
    AccountType,
    CostEstimate,
    NFTAsset,
    SendInputs,
    SendScreen,
    SendWarnings,
    TransferWarning,
    WarningSeverity,
)

SENDER = "0x" + "12" * 20
RECIPIENT = "0x" + "34" * 20

NEW_ADDRESS = TransferWarning("New address", "You haven't sent to this address before.", WarningSeverity.MEDIUM)


def inputs(ready=True, **overrides):
    values = dict(
        account=Account(SENDER),
        recipient=RECIPIENT,
        currency_symbol="ETH",
        amount="0.5",
    )
    if ready:
        values.update(tx_request={"to": RECIPIENT}, cost_estimate=CostEstimate("0.002 ETH"))
    values.update(overrides)
    return SendInputs(**values)


class Harness:
    """Send flow with recording callbacks."""

    def __init__(self, send_inputs=None, config=None, challenge=None):
        self.sink = NotificationSink()
        self.sent = []
        self.estimates = []
        self.warning_modals = []
        self.closed = []
        self.navigated = []
        self.flow = SendFlow(
            config or FlowConfig(),
            send_inputs or inputs(),
            transfer_token=lambda i: self.sent.append(("token", i)),
            transfer_nft=lambda i: self.sent.append(("nft", i)),
            notifications=self.sink,
            challenge=challenge,
            request_estimate=self.estimates.append,
            open_warning_modal=self.warning_modals.append,
            close_modal=lambda: self.closed.append(True),
            navigate_to_activity=lambda: self.navigated.append(True),
        )


class TestSendFlow:
    """Submission scenarios without a challenge."""

    def test_token_transfer(self):
        harness = Harness()
        harness.flow.activate()

        assert [variant for variant, _ in harness.sent] == ["token"]
        notification = harness.sink.last_notification()
        assert notification.type is NotificationType.TRANSFER_CURRENCY_PENDING
        assert notification.payload == {"currency": "ETH", "amount": "0.5"}
        assert harness.closed == [True]
        assert harness.navigated == [True]
        assert harness.flow.state is FlowState.INACTIVE

    def test_nft_transfer(self):
        nft = NFTAsset("0x" + "56" * 20, "42")
        harness = Harness(inputs(nft=nft, currency_symbol=None, amount=None))
        harness.flow.activate()

        assert [variant for variant, _ in harness.sent] == ["nft"]
        notification = harness.sink.last_notification()
        assert notification.type is NotificationType.TRANSFER_NFT_PENDING
        assert notification.payload["token_id"] == "42"
        assert len(harness.sink.notifications) == 1

    def test_waits_for_cost_estimate(self):
        harness = Harness(inputs(ready=False))
        assert harness.flow.is_disabled()

        harness.flow.activate()
        assert harness.flow.state is FlowState.PENDING
        assert len(harness.estimates) == 1
        assert harness.sent == []

        harness.flow.update_inputs(cost_estimate=CostEstimate("0.002 ETH"), tx_request={"to": RECIPIENT})
        assert len(harness.sent) == 1

    def test_estimate_error_is_retryable(self):
        harness = Harness(inputs(ready=False))
        harness.flow.activate()
        harness.flow.update_inputs(cost_estimate=CostEstimate(error="execution reverted"))

        controller = harness.flow.controller
        assert controller.retry_available()
        assert isinstance(controller.last_error, TransientGateFailure)

        harness.flow.activate()
        assert len(harness.estimates) == 2

    def test_readonly_account_blocks(self):
        harness = Harness(inputs(account=Account(SENDER, AccountType.READONLY)))
        harness.flow.activate()

        assert harness.flow.state is FlowState.BLOCKED
        assert harness.flow.is_disabled()
        explanation = harness.flow.explanation()
        assert explanation.title == "Transaction blocked"
        assert explanation.message == READONLY_MESSAGE
        assert harness.sent == []

    def test_blocking_warning_blocks(self):
        blocking = TransferWarning("Insufficient funds", "Not enough ETH for gas", WarningSeverity.HIGH, True)
        harness = Harness(inputs(warnings=SendWarnings([blocking])))
        harness.flow.activate()

        assert harness.flow.state is FlowState.BLOCKED
        assert harness.flow.explanation().message == "Not enough ETH for gas"

    def test_warning_is_explained_without_blocking(self):
        harness = Harness(inputs(ready=False, warnings=SendWarnings([NEW_ADDRESS])))
        explanation = harness.flow.explanation()
        assert explanation.kind == "warning"
        assert explanation.title == "New address"

    def test_non_blocking_warning_still_submits(self):
        """Test an advisory warning is surfaced without stopping submission."""
        harness = Harness(inputs(warnings=SendWarnings([NEW_ADDRESS])))
        assert harness.flow.explanation().kind == "warning"
        assert not harness.flow.is_disabled()

        harness.flow.activate()
        assert len(harness.sent) == 1

    def test_back_to_form_resets(self):
        harness = Harness(inputs(ready=False))
        harness.flow.activate()
        token = harness.estimates[0]

        harness.flow.back_to_form()
        assert harness.flow.screen is SendScreen.FORM
        assert harness.flow.state is FlowState.INACTIVE
        assert token.cancelled

    def test_single_completion_event(self):
        harness = Harness()
        harness.flow.activate()
        assert len(harness.sink.events_named("flow_completed")) == 1

    def test_failed_transfer_can_be_retried(self):
        """Test a network error from the transfer leaves the button usable."""
        harness = Harness()
        attempts = []

        def flaky_transfer(send_inputs):
            attempts.append(send_inputs)
            if len(attempts) == 1:
                raise ConnectionError("rpc unavailable")

        harness.flow.submitter.handlers["token"] = flaky_transfer
        with pytest.raises(ConnectionError):
            harness.flow.activate()

        assert harness.flow.state is FlowState.INACTIVE
        assert harness.sink.notifications == []

        harness.flow.activate()
        assert len(attempts) == 2
        assert harness.flow.state is FlowState.INACTIVE
        assert len(harness.sink.notifications) == 1


class TestWarningAcknowledgement:
    """Scenarios with require_warning_acknowledgement enabled."""

    def make(self):
        config = FlowConfig(require_warning_acknowledgement=True)
        harness = Harness(inputs(warnings=SendWarnings([NEW_ADDRESS])), config=config)
        harness.flow.activate()
        return harness

    def test_pauses_on_warning_modal(self):
        harness = self.make()
        assert harness.flow.controller.pending_gate.gate_id == "warning_acknowledged"
        assert harness.warning_modals == [NEW_ADDRESS]
        assert harness.flow.is_disabled()

    def test_acknowledge_submits(self):
        harness = self.make()
        harness.flow.acknowledge_warning()
        assert len(harness.sent) == 1
        assert harness.flow.explanation() is None

    def test_dismiss_resets(self):
        harness = self.make()
        harness.flow.dismiss_warning()
        assert harness.flow.state is FlowState.INACTIVE
        assert harness.sent == []

    def test_below_threshold_does_not_pause(self):
        config = FlowConfig(require_warning_acknowledgement=True, warning_threshold="high")
        harness = Harness(inputs(warnings=SendWarnings([NEW_ADDRESS])), config=config)
        harness.flow.activate()
        assert len(harness.sent) == 1
        assert harness.warning_modals == []


class TestChallenge:
    """Scenarios with an authentication challenge."""

    def test_challenge_passes(self):
        harness = Harness(challenge=lambda ok, fail: ok())
        harness.flow.activate()
        assert len(harness.sent) == 1

    def test_challenge_fails_returns_to_form(self):
        harness = Harness(challenge=lambda ok, fail: fail())
        harness.flow.activate()

        assert harness.sent == []
        assert harness.flow.screen is SendScreen.FORM
        assert harness.flow.state is FlowState.INACTIVE
        assert isinstance(harness.flow.controller.last_error, ChallengeFailed)
        assert harness.sink.notifications == []

    def test_late_challenge_success(self):
        callbacks = {}
        harness = Harness(challenge=lambda ok, fail: callbacks.update(ok=ok, fail=fail))
        harness.flow.activate()

        assert harness.flow.controller.pending_gate.gate_id == "challenge"
        assert harness.flow.is_disabled()
        callbacks["ok"]()
        assert len(harness.sent) == 1

    def test_late_challenge_after_reset_is_ignored(self):
        callbacks = {}
        harness = Harness(challenge=lambda ok, fail: callbacks.update(ok=ok, fail=fail))
        harness.flow.activate()
        harness.flow.back_to_form()

        callbacks["ok"]()
        assert harness.sent == []
        assert harness.flow.state is FlowState.INACTIVE

    def test_passed_challenge_does_not_carry_over(self):
        """Test a new activation asks for the challenge again."""
        prompts = []
        harness = Harness(challenge=lambda ok, fail: (prompts.append(1), ok()))
        harness.flow.activate()
        harness.flow.activate()
        assert len(prompts) == 2
        assert len(harness.sent) == 2
