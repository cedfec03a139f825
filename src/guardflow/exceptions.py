"""
GuardFlow Exceptions

Error taxonomy for guarded action flows, with remediation hints.
"""

from typing import Optional, List


class GuardFlowError(Exception):
    """Base exception for all guardflow errors."""

    def __init__(
        self,
        message: str,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            remediation: Suggested fix for the user
            details: Technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.remediation = remediation
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.remediation:
            parts.append(f"To fix: {self.remediation}")
        return "\n".join(parts)


class TransientGateFailure(GuardFlowError):
    """A gate check failed for a recoverable reason (network error, timeout)."""

    def __init__(
        self,
        message: str,
        gate_id: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.gate_id = gate_id
        if not remediation:
            remediation = "Check your internet connection and try again."
        super().__init__(message, remediation, details)


class BlockingGateFailure(GuardFlowError):
    """A gate definitively failed (feature unavailable, ineligible region)."""

    def __init__(
        self,
        message: str,
        gate_id: Optional[str] = None,
        title: Optional[str] = None,
        learn_more_url: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.gate_id = gate_id
        self.title = title
        self.learn_more_url = learn_more_url
        if not remediation and learn_more_url:
            remediation = f"See {learn_more_url} for more information"
        super().__init__(message, remediation, details)


class ChallengeFailed(GuardFlowError):
    """The authentication/confirmation challenge was rejected."""

    def __init__(
        self,
        message: str = "Authentication challenge was not completed",
        return_to: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.return_to = return_to
        if not remediation:
            remediation = "Review your input and submit again"
        super().__init__(message, remediation, details)


class SubmissionBlocked(GuardFlowError):
    """A synchronous precondition for submission was false at invocation time."""

    def __init__(
        self,
        message: str,
        failed_preconditions: Optional[List[str]] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.failed_preconditions = failed_preconditions or []
        if not details and self.failed_preconditions:
            details = "Failed: " + ", ".join(self.failed_preconditions)
        super().__init__(message, remediation, details)


class ContractViolation(GuardFlowError):
    """A collaborator broke the flow contract (programmer error)."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.component = component
        super().__init__(message, remediation, details)


class ConfigError(GuardFlowError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.config_key = config_key
        if not remediation and config_key:
            remediation = f"Check the value of '{config_key}' in your guardflow.yaml"
        super().__init__(message, remediation, details)


# Error code mapping for CLI exit codes
ERROR_CODES = {
    ConfigError: 10,
    TransientGateFailure: 11,
    BlockingGateFailure: 12,
    ChallengeFailed: 13,
    SubmissionBlocked: 14,
    ContractViolation: 15,
    GuardFlowError: 1,
}


def get_error_code(error: Exception) -> int:
    """Get the exit code for an error type."""
    for error_type, code in ERROR_CODES.items():
        if isinstance(error, error_type):
            return code
    return 1
