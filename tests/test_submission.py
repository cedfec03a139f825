"""Tests for review submission."""

import pytest

from guardflow.exceptions import ChallengeFailed, ContractViolation, SubmissionBlocked
from guardflow.submission import (
    Account,
    AccountType,
    CostEstimate,
    NFTAsset,
    ReviewSubmitter,
    SendInputs,
    SendScreen,
    SendWarnings,
    SubmitStatus,
    TransferWarning,
    WarningSeverity,
    failed_preconditions,
)

SENDER = "0x" + "12" * 20
RECIPIENT = "0x" + "34" * 20


def ready_inputs(**overrides):
    values = dict(
        account=Account(SENDER),
        recipient=RECIPIENT,
        currency_symbol="ETH",
        amount="0.5",
        tx_request={"to": RECIPIENT},
        cost_estimate=CostEstimate("0.002 ETH"),
    )
    values.update(overrides)
    return SendInputs(**values)


class Recorder:
    """Captures variant executions, completions and screen changes."""

    def __init__(self):
        self.token = []
        self.nft = []
        self.completed = []
        self.screens = []

    def submitter(self, challenge=None):
        return ReviewSubmitter(
            transfer_token=self.token.append,
            transfer_nft=self.nft.append,
            on_completed=self.completed.append,
            set_screen=self.screens.append,
            challenge=challenge,
        )


class TestPreconditions:
    """Test synchronous submit preconditions."""

    def test_ready_inputs_pass(self):
        assert failed_preconditions(ready_inputs()) == []

    def test_each_precondition(self):
        blocking = SendWarnings([TransferWarning("Insufficient funds", "Not enough ETH", WarningSeverity.HIGH, True)])
        assert failed_preconditions(ready_inputs(warnings=blocking)) == ["no_blocking_warning"]
        assert failed_preconditions(ready_inputs(cost_estimate=None)) == ["cost_estimate_available"]
        assert failed_preconditions(
            ready_inputs(cost_estimate=CostEstimate("0.1", error="gas too low"))
        ) == ["cost_estimate_error_free"]
        assert failed_preconditions(ready_inputs(tx_request=None)) == ["transaction_request_ready"]
        assert failed_preconditions(
            ready_inputs(account=Account(SENDER, AccountType.READONLY))
        ) == ["account_can_submit"]

    def test_warning_helpers(self):
        low = TransferWarning("Low", "low", WarningSeverity.LOW)
        high = TransferWarning("High", "high", WarningSeverity.HIGH)
        warnings = SendWarnings([low, high])

        assert warnings.blocking_warning is None
        assert warnings.first_at_or_above(WarningSeverity.MEDIUM) is high
        assert WarningSeverity.from_name("medium") is WarningSeverity.MEDIUM


class TestReviewSubmitter:
    """Test variant selection and at-most-once execution."""

    def test_token_variant(self):
        recorder = Recorder()
        inputs = ready_inputs()
        result = recorder.submitter().submit("life-1", inputs)

        assert result.status is SubmitStatus.SUBMITTED
        assert result.variant == "token"
        assert recorder.token == [inputs]
        assert recorder.nft == []
        assert recorder.completed == [inputs]

    def test_nft_variant(self):
        recorder = Recorder()
        inputs = ready_inputs(nft=NFTAsset("0x" + "56" * 20, "42"), currency_symbol=None, amount=None)
        result = recorder.submitter().submit("life-1", inputs)

        assert result.variant == "nft"
        assert recorder.nft == [inputs]
        assert recorder.token == []

    def test_second_submit_for_same_lifetime(self):
        """Test exactly one transfer per lifetime."""
        recorder = Recorder()
        submitter = recorder.submitter()
        submitter.submit("life-1", ready_inputs())
        result = submitter.submit("life-1", ready_inputs())

        assert result.status is SubmitStatus.ALREADY_SUBMITTED
        assert len(recorder.token) == 1
        assert len(recorder.completed) == 1

    def test_missing_recipient_is_contract_violation(self):
        recorder = Recorder()
        with pytest.raises(ContractViolation):
            recorder.submitter().submit("life-1", ready_inputs(recipient=None))
        assert recorder.token == []

    def test_failed_precondition_blocks(self):
        recorder = Recorder()
        with pytest.raises(SubmissionBlocked) as exc_info:
            recorder.submitter().submit("life-1", ready_inputs(tx_request=None))
        assert exc_info.value.failed_preconditions == ["transaction_request_ready"]
        assert recorder.token == []

    def test_handler_error_releases_lifetime(self):
        def broken(inputs):
            raise RuntimeError("rpc down")

        completed = []
        submitter = ReviewSubmitter(broken, broken, completed.append, lambda screen: None)
        with pytest.raises(RuntimeError):
            submitter.submit("life-1", ready_inputs())
        assert not submitter.record.has_fired("life-1")
        assert completed == []

    def test_readonly_account_runs_no_variant(self):
        recorder = Recorder()
        with pytest.raises(SubmissionBlocked) as exc_info:
            recorder.submitter().submit("life-1", ready_inputs(account=Account(SENDER, AccountType.READONLY)))
        assert exc_info.value.failed_preconditions == ["account_can_submit"]
        assert recorder.token == []
        assert recorder.nft == []
        assert recorder.completed == []


class TestChallenge:
    """Test the optional authentication challenge."""

    def test_challenge_success(self):
        recorder = Recorder()
        result = recorder.submitter(challenge=lambda ok, fail: ok()).submit("life-1", ready_inputs())

        assert result.status is SubmitStatus.SUBMITTED
        assert len(recorder.token) == 1

    def test_challenge_failure_returns_to_form(self):
        recorder = Recorder()
        with pytest.raises(ChallengeFailed) as exc_info:
            recorder.submitter(challenge=lambda ok, fail: fail()).submit("life-1", ready_inputs())

        assert exc_info.value.return_to == "send_form"
        assert recorder.screens == [SendScreen.FORM]
        assert recorder.token == []

    def test_late_challenge_success(self):
        """Test a challenge that answers after submit() returned."""
        recorder = Recorder()
        pending = {}

        def challenge(ok, fail):
            pending["ok"] = ok

        inputs = ready_inputs()
        result = recorder.submitter(challenge=challenge).submit("life-1", inputs)
        assert result.status is SubmitStatus.AWAITING_CHALLENGE
        assert recorder.token == []

        pending["ok"]()
        assert recorder.token == [inputs]
        assert len(recorder.completed) == 1

    def test_late_failure_records_error(self):
        recorder = Recorder()
        pending = {}
        submitter = recorder.submitter(challenge=lambda ok, fail: pending.update(fail=fail))
        submitter.submit("life-1", ready_inputs())

        pending["fail"]()
        assert isinstance(submitter.last_error, ChallengeFailed)
        assert recorder.screens == [SendScreen.FORM]
