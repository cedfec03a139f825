"""
Wallet Connection Session

Shared connection state for every flow that needs an account. Mirrors the
lifecycle of a wallet connector request:

    IDLE -> PENDING (connect) -> CONNECTED (complete)
                              -> FAILED    (fail)
                              -> IDLE      (user rejected, drawer closed)

Closing the account drawer while a request is pending abandons it.
"""

from enum import Enum
from typing import Callable, List, Optional

from guardflow.collaborators.drawer import AccountDrawer
from guardflow.collaborators.notifications import NotificationSink
from guardflow.gates import Condition
from guardflow.logging_config import get_logger

logger = get_logger("connection")


class ConnectionStatus(Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONNECTED = "connected"
    FAILED = "failed"


class UserRejectedRequest(Exception):
    """The user dismissed the connection request in their wallet."""


class ConnectionSession:
    """Tracks the active wallet connection attempt and account."""

    def __init__(
        self,
        drawer: AccountDrawer,
        telemetry: Optional[NotificationSink] = None,
        page: str = "swap"
    ):
        self.drawer = drawer
        self.telemetry = telemetry
        self.page = page
        self.status = ConnectionStatus.IDLE
        self.account: Optional[str] = None
        self.connector: Optional[str] = None
        self.error: Optional[Exception] = None
        self._listeners: List[Callable[[Condition], None]] = []
        drawer.add_listener(self._on_drawer_change)

    @property
    def is_pending(self) -> bool:
        return self.status is ConnectionStatus.PENDING

    def add_listener(self, listener: Callable[[Condition], None]):
        """Receive ACCOUNT_CONNECTED when a connection succeeds."""
        self._listeners.append(listener)

    def connect(self, connector: str):
        """Start connecting with a wallet connector."""
        logger.debug("Connection activating: %s", connector)
        self.connector = connector
        self.error = None
        self.status = ConnectionStatus.PENDING

    def complete(self, account: str) -> bool:
        """Connector reported success.

        Returns:
            False if no request was pending (stale result, ignored)
        """
        if not self.is_pending:
            logger.debug("Ignoring connection result with no pending request")
            return False

        logger.debug("Connection activated: %s", self.connector)
        self.account = account
        self.status = ConnectionStatus.CONNECTED
        if self.telemetry:
            self.telemetry.track(
                "wallet_connected",
                result="succeeded",
                wallet_type=self.connector,
                page=self.page,
            )
        for listener in list(self._listeners):
            listener(Condition.ACCOUNT_CONNECTED)
        self.drawer.close()
        return True

    def fail(self, error: Exception):
        """Connector reported an error."""
        if isinstance(error, UserRejectedRequest):
            self.reset()
            return

        logger.error("Connection failed: %s: %s", self.connector, error)
        self.status = ConnectionStatus.FAILED
        self.error = error
        if self.telemetry:
            self.telemetry.track(
                "wallet_connected",
                result="failed",
                wallet_type=self.connector,
                page=self.page,
                error=str(error),
            )

    def reset(self):
        """Drop the current request without touching the account."""
        if self.status is not ConnectionStatus.CONNECTED:
            self.status = ConnectionStatus.IDLE
            self.connector = None
        self.error = None

    def disconnect(self):
        self.account = None
        self.connector = None
        self.status = ConnectionStatus.IDLE

    def _on_drawer_change(self, is_open: bool):
        if not is_open and self.is_pending:
            logger.debug("Drawer closed with pending connection; abandoning")
            self.reset()
            self.disconnect()
