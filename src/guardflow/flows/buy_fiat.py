"""
Buy Fiat Flow

"Buy" button of the swap screen. Pressing it walks through:

    1. eligibility        - is the fiat on-ramp offered in this region?
    2. account_connected  - is a wallet connected? (opens the account drawer)

and then opens the fiat on-ramp modal once. The flow resumes on its own
when the region lookup finishes or the wallet connects; closing the
drawer without connecting abandons it.
"""

from typing import Callable, Optional

from guardflow.cancellation import CancelToken
from guardflow.collaborators.availability import RegionAvailability
from guardflow.collaborators.connection import ConnectionSession
from guardflow.collaborators.drawer import AccountDrawer
from guardflow.collaborators.notifications import NotificationSink
from guardflow.config import FlowConfig
from guardflow.controller import FlowController
from guardflow.gates import Condition, Gate, GateChain, GateCheck
from guardflow.state import FlowState
from guardflow.surface import Explanation
from guardflow.terminal import TerminalAction

BUY_PATH = "/buy"


class BuyFiatFlow:
    """Wires the buy button to the region check, the drawer and the modal."""

    def __init__(
        self,
        config: FlowConfig,
        availability: RegionAvailability,
        drawer: AccountDrawer,
        session: ConnectionSession,
        open_modal: Callable[[], None],
        telemetry: Optional[NotificationSink] = None
    ):
        self.config = config
        self.availability = availability
        self.drawer = drawer
        self.session = session
        self.telemetry = telemetry

        self.eligibility_gate = Gate(
            gate_id="eligibility",
            check=availability.check,
            is_async=True,
            on_enter=availability.request,
            watches=frozenset({Condition.ELIGIBILITY_RESOLVED}),
            title="Not available in your region",
            blocked_message="Buying crypto with fiat is not available in your region.",
            learn_more_url=config.learn_more_url,
        )
        self.account_gate = Gate(
            gate_id="account_connected",
            check=self._check_account,
            is_async=True,
            on_enter=self._open_connection_panel,
            watches=frozenset({Condition.ACCOUNT_CONNECTED}),
            interrupts=True,
            title="Connect a wallet",
        )

        self.controller = FlowController(
            chain=GateChain([self.eligibility_gate, self.account_gate]),
            terminal=TerminalAction(lambda _: open_modal(), name="open_fiat_onramp_modal"),
            name="buy_fiat",
        )
        if telemetry:
            self.controller.add_completion_listener(telemetry.on_completed)

        availability.add_listener(self.controller.notify)
        session.add_listener(self.controller.notify)
        drawer.add_listener(self._on_drawer_change)

    @property
    def visible(self) -> bool:
        """The buy control is hidden when /buy is blocked for this deployment."""
        return not self.config.is_path_blocked(BUY_PATH)

    @property
    def state(self) -> FlowState:
        return self.controller.state

    def press(self) -> FlowState:
        """Handle a press of the buy button."""
        if self.telemetry:
            self.telemetry.track("buy_button_pressed", account_connected=bool(self.session.account))
        return self.controller.activate()

    def is_disabled(self) -> bool:
        return self.controller.is_disabled()

    def explanation(self) -> Optional[Explanation]:
        return self.controller.explanation()

    def reset(self):
        """User navigated away; forget a negative region answer as well."""
        self.controller.reset(notes="navigated away")
        self.availability.invalidate()

    def _check_account(self) -> GateCheck:
        if self.session.account:
            return GateCheck.satisfied()
        return GateCheck.pending("waiting for wallet connection")

    def _open_connection_panel(self, token: CancelToken):
        self.drawer.show_onramp_text = True
        self.drawer.open()
        token.add_callback(self._hide_onramp_text)

    def _hide_onramp_text(self):
        self.drawer.show_onramp_text = False

    def _on_drawer_change(self, is_open: bool):
        if not is_open:
            self.controller.notify(Condition.PANEL_CLOSED)
