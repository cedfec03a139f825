"""
Review & Submit

Terminal action of the send flow. Given a fully-satisfied activation it
selects exactly one transfer variant (fungible token or NFT), checks the
synchronous submit preconditions once more, optionally runs an
authentication challenge, executes the variant and emits one completion
notification.

Preconditions:
    - no blocking warning outstanding
    - a cost estimate is available and free of error
    - a prepared transaction request is present
    - the sending account can sign (not read-only)
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional

from guardflow.exceptions import ChallengeFailed, ContractViolation, SubmissionBlocked
from guardflow.logging_config import get_logger
from guardflow.terminal import TerminalActionRecord

logger = get_logger("submission")


class WarningSeverity(IntEnum):
    """Severity of a transfer warning; comparable."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_name(cls, name: str) -> "WarningSeverity":
        return cls[name.upper()]


@dataclass(frozen=True)
class TransferWarning:
    """A warning about the pending transfer (content computed elsewhere)."""
    title: str
    message: str
    severity: WarningSeverity = WarningSeverity.LOW
    blocking: bool = False


@dataclass
class SendWarnings:
    """All warnings for the current send."""
    warnings: List[TransferWarning] = field(default_factory=list)

    @property
    def blocking_warning(self) -> Optional[TransferWarning]:
        for warning in self.warnings:
            if warning.blocking:
                return warning
        return None

    def first_at_or_above(self, severity: WarningSeverity) -> Optional[TransferWarning]:
        """First warning whose severity reaches the threshold."""
        for warning in self.warnings:
            if warning.severity >= severity:
                return warning
        return None


@dataclass(frozen=True)
class CostEstimate:
    """Network fee estimate."""
    value: Optional[str] = None
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.value) and not self.error


class AccountType(Enum):
    SIGNER = "signer_mnemonic"
    READONLY = "readonly"


@dataclass(frozen=True)
class Account:
    address: str
    account_type: AccountType = AccountType.SIGNER


@dataclass(frozen=True)
class NFTAsset:
    contract_address: str
    token_id: str


@dataclass
class SendInputs:
    """
    Precomputed inputs of the review screen.

    Exactly one of (currency_address, amount) or nft describes what is sent.
    """
    account: Account
    chain_id: int = 1
    tx_id: str = ""
    recipient: Optional[str] = None
    currency_address: Optional[str] = None
    currency_symbol: Optional[str] = None
    amount: Optional[str] = None
    amount_usd: Optional[float] = None
    nft: Optional[NFTAsset] = None
    tx_request: Optional[Dict[str, Any]] = None
    cost_estimate: Optional[CostEstimate] = None
    warnings: SendWarnings = field(default_factory=SendWarnings)

    @property
    def variant(self) -> str:
        return "nft" if self.nft else "token"


class SendScreen(Enum):
    """Stages of the send UI."""

    FORM = "send_form"
    REVIEW = "send_review"


class SubmitStatus(Enum):
    SUBMITTED = "submitted"
    AWAITING_CHALLENGE = "awaiting_challenge"
    ALREADY_SUBMITTED = "already_submitted"


@dataclass(frozen=True)
class SubmissionResult:
    status: SubmitStatus
    lifetime_id: str
    variant: Optional[str] = None


def failed_preconditions(inputs: SendInputs) -> List[str]:
    """Names of the submit preconditions that are currently false."""
    failed = []
    if inputs.warnings.blocking_warning is not None:
        failed.append("no_blocking_warning")
    estimate = inputs.cost_estimate
    if estimate is None or not estimate.value:
        failed.append("cost_estimate_available")
    elif estimate.error:
        failed.append("cost_estimate_error_free")
    if not inputs.tx_request:
        failed.append("transaction_request_ready")
    if inputs.account.account_type is AccountType.READONLY:
        failed.append("account_can_submit")
    return failed


VariantHandler = Callable[[SendInputs], None]
# challenge(on_success, on_failure); may call back now or later
Challenge = Callable[[Callable[[], None], Callable[[], None]], None]


class ReviewSubmitter:
    """Executes exactly one transfer variant per activation lifetime."""

    def __init__(
        self,
        transfer_token: VariantHandler,
        transfer_nft: VariantHandler,
        on_completed: Callable[[SendInputs], None],
        set_screen: Callable[[SendScreen], None],
        challenge: Optional[Challenge] = None,
        record: Optional[TerminalActionRecord] = None
    ):
        self.handlers: Dict[str, VariantHandler] = {
            "token": transfer_token,
            "nft": transfer_nft,
        }
        self.on_completed = on_completed
        self.set_screen = set_screen
        self.challenge = challenge
        self.record = record or TerminalActionRecord()
        self.last_error: Optional[Exception] = None

    def submit(self, lifetime_id: str, inputs: SendInputs) -> SubmissionResult:
        """Submit the reviewed transfer.

        Args:
            lifetime_id: Activation lifetime the submission belongs to
            inputs: Precomputed review inputs

        Returns:
            SubmissionResult; AWAITING_CHALLENGE if the challenge answers later

        Raises:
            ContractViolation: No recipient was resolved
            SubmissionBlocked: A precondition is false
            ChallengeFailed: The challenge rejected synchronously
        """
        if self.record.has_fired(lifetime_id):
            logger.debug("Submission for %s already executed", lifetime_id)
            return SubmissionResult(SubmitStatus.ALREADY_SUBMITTED, lifetime_id, inputs.variant)

        if not inputs.recipient:
            logger.error("Submit invoked with no recipient for %s", lifetime_id)
            raise ContractViolation("Submit invoked with no recipient resolved", component="ReviewSubmitter")

        self._ensure_preconditions(inputs)

        if self.challenge is None:
            return self._execute(lifetime_id, inputs)

        outcome: Dict[str, Any] = {}

        def on_success():
            try:
                self._ensure_preconditions(inputs)
            except SubmissionBlocked as e:
                self.last_error = e
                outcome["blocked"] = e
                if "returned" in outcome:
                    self._return_to_form()
                return
            outcome["result"] = self._execute(lifetime_id, inputs)

        def on_failure():
            outcome["failed"] = True
            self.last_error = ChallengeFailed(return_to=SendScreen.FORM.value)
            self._return_to_form()

        self.challenge(on_success, on_failure)
        outcome["returned"] = True

        if outcome.get("failed"):
            raise ChallengeFailed(return_to=SendScreen.FORM.value)
        if "blocked" in outcome:
            raise outcome["blocked"]
        if "result" in outcome:
            return outcome["result"]
        return SubmissionResult(SubmitStatus.AWAITING_CHALLENGE, lifetime_id, inputs.variant)

    def _ensure_preconditions(self, inputs: SendInputs):
        failed = failed_preconditions(inputs)
        if failed:
            logger.warning("Submission refused: %s", ", ".join(failed))
            raise SubmissionBlocked("Transaction cannot be submitted", failed_preconditions=failed)

    def _execute(self, lifetime_id: str, inputs: SendInputs) -> SubmissionResult:
        if self.record.has_fired(lifetime_id):
            return SubmissionResult(SubmitStatus.ALREADY_SUBMITTED, lifetime_id, inputs.variant)

        variant = inputs.variant
        self.record.mark(lifetime_id)
        try:
            self.handlers[variant](inputs)
        except Exception:
            self.record.discard(lifetime_id)
            raise
        logger.info("Submitted %s transfer for %s", variant, lifetime_id)
        self.on_completed(inputs)
        return SubmissionResult(SubmitStatus.SUBMITTED, lifetime_id, variant)

    def _return_to_form(self):
        logger.info("Returning to send form")
        self.set_screen(SendScreen.FORM)
