"""
Cooperative cancellation for async gate work.

Each activation lifetime owns one CancelToken. Effects that start external
work (availability lookups, connection attempts) receive the token and must
drop their result once it is cancelled.
"""

from typing import Callable, List

from guardflow.logging_config import get_logger

logger = get_logger("cancellation")


class CancelToken:
    """Cancellation signal shared between a flow and the work it started."""

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def add_callback(self, callback: Callable[[], None]):
        """Run callback on cancel (immediately if already cancelled)."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self):
        """Cancel the token. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        logger.debug("Cancelled token %s", self.label)
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancelToken({self.label!r}, {state})"
