"""
Region Availability

Looks up whether buying crypto with fiat is offered in the user's region
and holds the lookup state read by the eligibility gate.

The lookup is started by the gate's on_enter effect (request()) and run by
the host when it gets to it (resolve()), so the flow never blocks on the
network call itself.
"""

import time
from functools import wraps
from typing import Callable, List, Optional

import requests

from guardflow.cancellation import CancelToken
from guardflow.config import FlowConfig
from guardflow.exceptions import TransientGateFailure
from guardflow.gates import Condition, GateCheck
from guardflow.logging_config import get_logger

logger = get_logger("availability")

# Status codes that mean "definitively not offered here"
UNAVAILABLE_STATUS_CODES = (403, 451)


def retry_with_backoff(max_retries: int = 3, base_delay: float = 1.0):
    """Decorator for retry with exponential backoff on transient failures.

    Args:
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds (doubles each retry)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except TransientGateFailure as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = base_delay * (2 ** attempt)
                        logger.debug("Attempt %d failed, retrying in %.2fs", attempt + 1, delay)
                        time.sleep(delay)
            raise last_exception
        return wrapper
    return decorator


class AvailabilityClient:
    """HTTP client for the fiat on-ramp availability endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        base_delay: float = 0.5,
        session: Optional[requests.Session] = None
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: FlowConfig) -> "AvailabilityClient":
        return cls(
            url=config.availability_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
        )

    def fetch(self) -> bool:
        """Fetch availability, retrying transient failures.

        Returns:
            True if the feature is available in the caller's region

        Raises:
            TransientGateFailure: All attempts failed for recoverable reasons
        """
        attempt = retry_with_backoff(self.max_retries, self.base_delay)(self._fetch_once)
        return attempt()

    def _fetch_once(self) -> bool:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientGateFailure(
                "Availability lookup timed out",
                gate_id="eligibility",
                details=str(e),
            )
        except requests.ConnectionError as e:
            raise TransientGateFailure(
                "Could not reach the availability service",
                gate_id="eligibility",
                details=str(e),
            )

        if response.status_code in UNAVAILABLE_STATUS_CODES:
            return False
        if response.status_code != 200:
            raise TransientGateFailure(
                f"Availability service returned HTTP {response.status_code}",
                gate_id="eligibility",
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientGateFailure(
                "Availability service returned invalid JSON",
                gate_id="eligibility",
                details=str(e),
            )

        available = payload.get("available") if isinstance(payload, dict) else None
        if not isinstance(available, bool):
            raise TransientGateFailure(
                "Availability response is missing 'available'",
                gate_id="eligibility",
                details=str(payload)[:200],
            )
        return available


class FixedAvailabilityClient:
    """Client with a preset answer, for simulations and tests."""

    def __init__(self, available: bool = True, error: Optional[str] = None):
        self.available = available
        self.error = error
        self.calls = 0

    def fetch(self) -> bool:
        self.calls += 1
        if self.error:
            raise TransientGateFailure(self.error, gate_id="eligibility")
        return self.available


class RegionAvailability:
    """Lookup state for the eligibility gate."""

    def __init__(self, client):
        self.client = client
        self.checked = False
        self.loading = False
        self.available: Optional[bool] = None
        self.error: Optional[TransientGateFailure] = None
        self._pending: Optional[CancelToken] = None
        self._listeners: List[Callable[[Condition], None]] = []

    def add_listener(self, listener: Callable[[Condition], None]):
        """Receive ELIGIBILITY_RESOLVED after each finished lookup."""
        self._listeners.append(listener)

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    def request(self, token: CancelToken):
        """Start a lookup on behalf of the activation owning token."""
        if self.in_flight:
            return
        self.loading = True
        self.error = None
        self._pending = token
        token.add_callback(lambda: self._drop(token))

    def resolve(self) -> bool:
        """Run the outstanding lookup and publish its result.

        Returns:
            False if there was nothing to resolve or the requester was cancelled
        """
        token = self._pending
        if token is None:
            return False

        try:
            available = self.client.fetch()
            error = None
        except TransientGateFailure as e:
            available, error = None, e

        if token.cancelled or self._pending is not token:
            logger.debug("Dropping availability result for %r", token)
            return False

        self._pending = None
        self.loading = False
        if error is not None:
            self.error = error
            self.checked = False
        else:
            self.checked = True
            self.available = available
            logger.info("Fiat on-ramp available: %s", available)

        for listener in list(self._listeners):
            listener(Condition.ELIGIBILITY_RESOLVED)
        return True

    def invalidate(self):
        """Forget a negative or failed result so the next lookup starts over."""
        if self.available is False or self.error is not None:
            self.checked = False
            self.available = None
            self.error = None

    def check(self) -> GateCheck:
        """Eligibility gate check."""
        if self.error is not None:
            return GateCheck.transient(self.error.message)
        if self.loading or not self.checked:
            return GateCheck.pending("checking region availability")
        if self.available:
            return GateCheck.satisfied()
        return GateCheck.blocking("Buying crypto with fiat is not available in your region.")

    def _drop(self, token: CancelToken):
        if self._pending is token:
            self._pending = None
            self.loading = False
