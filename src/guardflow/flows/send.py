"""
Send Flow

Review screen of a token/NFT transfer. The submit button passes through:

    1. cost_estimate          - fee estimate and transaction request ready (async)
    2. review_ready           - no blocking warning, account can sign
    3. warning_acknowledged   - optional: user confirmed the warning modal
    4. challenge              - optional: authentication (biometrics/password)

and then submits exactly one transfer through ReviewSubmitter. A failed or
abandoned challenge returns the user to the send form and resets the flow.
"""

from dataclasses import replace
from typing import Callable, List, Optional

from guardflow.cancellation import CancelToken
from guardflow.collaborators.notifications import NotificationSink, NotificationType
from guardflow.config import FlowConfig
from guardflow.controller import FlowController
from guardflow.exceptions import ChallengeFailed
from guardflow.gates import Condition, Gate, GateChain, GateCheck
from guardflow.state import FlowState
from guardflow.submission import (
    AccountType,
    Challenge,
    ReviewSubmitter,
    SendInputs,
    SendScreen,
    TransferWarning,
    VariantHandler,
    WarningSeverity,
    failed_preconditions,
)
from guardflow.surface import Explanation
from guardflow.terminal import TerminalAction
from guardflow.logging_config import get_logger

logger = get_logger("flows.send")

READONLY_MESSAGE = "This wallet is view-only and cannot send transactions."


class SendFlow:
    """Guards the review screen's submit button."""

    def __init__(
        self,
        config: FlowConfig,
        inputs: SendInputs,
        transfer_token: VariantHandler,
        transfer_nft: VariantHandler,
        notifications: NotificationSink,
        challenge: Optional[Challenge] = None,
        request_estimate: Optional[Callable[[CancelToken], None]] = None,
        open_warning_modal: Optional[Callable[[TransferWarning], None]] = None,
        close_modal: Optional[Callable[[], None]] = None,
        navigate_to_activity: Optional[Callable[[], None]] = None
    ):
        self.config = config
        self.inputs = inputs
        self.notifications = notifications
        self.screen = SendScreen.REVIEW
        self.warning_threshold = WarningSeverity.from_name(config.warning_threshold)
        self._challenge = challenge
        self._open_warning_modal = open_warning_modal
        self._close_modal = close_modal
        self._navigate_to_activity = navigate_to_activity
        self._acknowledged: Optional[TransferWarning] = None
        self._challenge_passed_for: Optional[str] = None

        self.submitter = ReviewSubmitter(
            transfer_token=transfer_token,
            transfer_nft=transfer_nft,
            on_completed=self._on_submitted,
            set_screen=self.set_screen,
        )

        gates: List[Gate] = [
            Gate(
                gate_id="cost_estimate",
                check=self._check_cost_estimate,
                is_async=True,
                on_enter=request_estimate,
                watches=frozenset({Condition.COST_ESTIMATED}),
            ),
            Gate(
                gate_id="review_ready",
                check=self._check_review_ready,
                watches=frozenset({Condition.WARNINGS_CHANGED}),
                title="Transaction blocked",
            ),
        ]
        if config.require_warning_acknowledgement:
            gates.append(Gate(
                gate_id="warning_acknowledged",
                check=self._check_warning_acknowledged,
                on_enter=self._show_warning_modal,
                watches=frozenset({Condition.WARNINGS_CHANGED}),
                interrupts=True,
            ))
        if challenge is not None:
            gates.append(Gate(
                gate_id="challenge",
                check=self._check_challenge,
                is_async=True,
                on_enter=self._open_challenge,
                watches=frozenset({Condition.CHALLENGE_RESOLVED}),
                interrupts=True,
            ))

        self.controller = FlowController(
            chain=GateChain(gates),
            terminal=TerminalAction(self._submit, name="submit_transfer"),
            name="send",
        )
        self.controller.add_completion_listener(notifications.on_completed)

    # ========== Host-facing API ==========

    @property
    def state(self) -> FlowState:
        return self.controller.state

    def activate(self):
        """Submit button pressed."""
        return self.controller.activate()

    def is_disabled(self) -> bool:
        """Disabled while the controller says so or a precondition is false."""
        return self.controller.is_disabled() or bool(failed_preconditions(self.inputs))

    def explanation(self) -> Optional[Explanation]:
        """Blocking reason, else the warning that needs acknowledgement."""
        blocked = self.controller.explanation()
        if blocked is not None:
            return blocked
        warning = self.pending_warning()
        if warning is None:
            return None
        return Explanation(title=warning.title, message=warning.message, kind="warning")

    def pending_warning(self) -> Optional[TransferWarning]:
        """Non-blocking warning at or above the threshold, if not acknowledged."""
        warnings = self.inputs.warnings
        if warnings.blocking_warning is not None:
            return None
        warning = warnings.first_at_or_above(self.warning_threshold)
        if warning is None or warning == self._acknowledged:
            return None
        return warning

    def update_inputs(self, **changes) -> bool:
        """Apply new review inputs and tell the controller what changed."""
        self.inputs = replace(self.inputs, **changes)
        relevant = False
        if {"cost_estimate", "tx_request"} & changes.keys():
            relevant |= self.controller.notify(Condition.COST_ESTIMATED)
        if {"warnings", "account"} & changes.keys():
            relevant |= self.controller.notify(Condition.WARNINGS_CHANGED)
        return relevant

    def acknowledge_warning(self):
        """User confirmed the warning modal."""
        self._acknowledged = self.inputs.warnings.first_at_or_above(self.warning_threshold)
        self.controller.notify(Condition.WARNINGS_CHANGED)

    def dismiss_warning(self):
        """User closed the warning modal without confirming."""
        self.controller.notify(Condition.PANEL_CLOSED)

    def back_to_form(self):
        """User went back to edit the transfer."""
        self.set_screen(SendScreen.FORM)

    def set_screen(self, screen: SendScreen):
        self.screen = screen
        if screen is SendScreen.FORM:
            self.controller.reset(notes="returned to send form")

    # ========== Gate checks ==========

    def _check_cost_estimate(self) -> GateCheck:
        estimate = self.inputs.cost_estimate
        if estimate is not None and estimate.error:
            return GateCheck.transient(f"Fee estimate failed: {estimate.error}")
        if estimate is None or not estimate.value or not self.inputs.tx_request:
            return GateCheck.pending("estimating network cost")
        return GateCheck.satisfied()

    def _check_review_ready(self) -> GateCheck:
        blocking = self.inputs.warnings.blocking_warning
        if blocking is not None:
            return GateCheck.blocking(blocking.message or blocking.title)
        if self.inputs.account.account_type is AccountType.READONLY:
            return GateCheck.blocking(READONLY_MESSAGE)
        return GateCheck.satisfied()

    def _check_warning_acknowledged(self) -> GateCheck:
        if self.pending_warning() is None:
            return GateCheck.satisfied()
        return GateCheck.pending("waiting for warning acknowledgement")

    def _check_challenge(self) -> GateCheck:
        if self._challenge_passed_for == self.controller.activation.lifetime_id:
            return GateCheck.satisfied()
        return GateCheck.pending("waiting for authentication")

    # ========== Effects ==========

    def _show_warning_modal(self, token: CancelToken):
        warning = self.pending_warning()
        if warning is not None and self._open_warning_modal:
            self._open_warning_modal(warning)

    def _open_challenge(self, token: CancelToken):
        lifetime_id = self.controller.activation.lifetime_id

        def on_success():
            if token.cancelled:
                logger.debug("Ignoring challenge success for a discarded activation")
                return
            self._challenge_passed_for = lifetime_id
            self.controller.notify(Condition.CHALLENGE_RESOLVED)

        def on_failure():
            if token.cancelled:
                return
            self.controller.last_error = ChallengeFailed(return_to=SendScreen.FORM.value)
            self.set_screen(SendScreen.FORM)

        self._challenge(on_success, on_failure)

    def _submit(self, lifetime_id: str):
        return self.submitter.submit(lifetime_id, self.inputs)

    def _on_submitted(self, inputs: SendInputs):
        # Exactly one completion notification per submitted transfer
        if self._close_modal:
            self._close_modal()
        if inputs.nft is not None:
            self.notifications.push_notification(
                NotificationType.TRANSFER_NFT_PENDING,
                contract_address=inputs.nft.contract_address,
                token_id=inputs.nft.token_id,
            )
        else:
            self.notifications.push_notification(
                NotificationType.TRANSFER_CURRENCY_PENDING,
                currency=inputs.currency_symbol or inputs.currency_address,
                amount=inputs.amount,
            )
        if self._navigate_to_activity:
            self._navigate_to_activity()
