"""
Account Drawer

Open/closed flag of the wallet panel that the connection gate interrupts
with. Listeners are told about every open/close change.
"""

from typing import Callable, List

from guardflow.logging_config import get_logger

logger = get_logger("drawer")


class AccountDrawer:
    """The wallet/account side panel."""

    def __init__(self):
        self.is_open = False
        # Show the "buy with fiat" hint inside the drawer
        self.show_onramp_text = False
        self._listeners: List[Callable[[bool], None]] = []

    def add_listener(self, listener: Callable[[bool], None]):
        self._listeners.append(listener)

    def open(self):
        if self.is_open:
            return
        self.is_open = True
        logger.debug("Account drawer opened")
        self._emit()

    def close(self):
        if not self.is_open:
            return
        self.is_open = False
        self.show_onramp_text = False
        logger.debug("Account drawer closed")
        self._emit()

    def toggle(self):
        if self.is_open:
            self.close()
        else:
            self.open()

    def _emit(self):
        for listener in list(self._listeners):
            listener(self.is_open)
