"""Integration tests for the buy-with-fiat flow."""

import pytest

from guardflow.collaborators import (
    AccountDrawer,
    ConnectionSession,
    FixedAvailabilityClient,
    NotificationSink,
    RegionAvailability,
)
from guardflow.config import REGION_AVAILABILITY_ARTICLE, FlowConfig
from guardflow.flows import BuyFiatFlow
from guardflow.state import FlowState

ACCOUNT = "0x" + "ab" * 20


class Harness:
    """Buy flow wired to in-memory collaborators."""

    def __init__(self, available=True, error=None, connected=False, config=None):
        self.sink = NotificationSink()
        self.drawer = AccountDrawer()
        self.session = ConnectionSession(self.drawer, telemetry=self.sink)
        if connected:
            self.session.connect("injected")
            self.session.complete(ACCOUNT)
        self.client = FixedAvailabilityClient(available=available, error=error)
        self.availability = RegionAvailability(self.client)
        self.opened = []
        self.flow = BuyFiatFlow(
            config or FlowConfig(),
            self.availability,
            self.drawer,
            self.session,
            open_modal=lambda: self.opened.append(True),
            telemetry=self.sink,
        )

    def connect(self):
        self.session.connect("injected")
        self.session.complete(ACCOUNT)


@pytest.fixture
def harness():
    return Harness()


class TestBuyFiatFlow:
    """End-to-end scenarios for the buy button."""

    def test_disconnected_eligible_user(self, harness):
        """Press, region lookup, drawer opens, connect, modal opens once."""
        harness.flow.press()
        assert harness.flow.state is FlowState.PENDING
        assert harness.flow.is_disabled()
        assert not harness.drawer.is_open

        harness.availability.resolve()
        assert harness.flow.controller.pending_gate.gate_id == "account_connected"
        assert harness.drawer.is_open
        assert harness.drawer.show_onramp_text

        harness.connect()
        assert harness.opened == [True]
        assert harness.flow.state is FlowState.INACTIVE
        assert not harness.drawer.is_open
        assert not harness.drawer.show_onramp_text
        assert len(harness.sink.events_named("flow_completed")) == 1

    def test_connected_eligible_user(self):
        harness = Harness(connected=True)
        harness.flow.press()
        harness.availability.resolve()

        assert harness.opened == [True]
        assert not harness.drawer.is_open

    def test_ineligible_region_blocks(self, harness):
        harness.client.available = False
        harness.flow.press()
        harness.availability.resolve()

        assert harness.flow.state is FlowState.BLOCKED
        assert harness.flow.is_disabled()
        explanation = harness.flow.explanation()
        assert explanation.title == "Not available in your region"
        assert explanation.learn_more_url == REGION_AVAILABILITY_ARTICLE
        assert not harness.drawer.is_open

        harness.flow.press()
        assert harness.flow.state is FlowState.BLOCKED
        assert harness.client.calls == 1

    def test_reset_after_block_rechecks_region(self, harness):
        harness.client.available = False
        harness.flow.press()
        harness.availability.resolve()

        harness.flow.reset()
        harness.client.available = True
        harness.flow.press()
        harness.availability.resolve()
        assert harness.client.calls == 2
        assert harness.flow.controller.pending_gate.gate_id == "account_connected"

    def test_abandoning_drawer_resets(self, harness):
        harness.flow.press()
        harness.availability.resolve()
        harness.drawer.close()

        assert harness.flow.state is FlowState.INACTIVE
        assert harness.opened == []

        # Connecting later does not resurrect the abandoned activation
        harness.connect()
        assert harness.opened == []

    def test_press_again_after_abandon_reopens_drawer(self, harness):
        harness.flow.press()
        harness.availability.resolve()
        harness.drawer.close()

        harness.flow.press()
        assert harness.drawer.is_open
        harness.connect()
        assert harness.opened == [True]

    def test_disabled_while_drawer_open(self, harness):
        """Test the button stays disabled while the drawer is open."""
        harness.flow.press()
        harness.availability.resolve()
        assert harness.flow.is_disabled()

    def test_transient_error_then_retry(self):
        harness = Harness(error="Network error")
        harness.flow.press()
        harness.availability.resolve()

        controller = harness.flow.controller
        assert controller.retry_available()
        assert harness.flow.explanation() is None

        harness.client.error = None
        harness.flow.press()
        assert harness.availability.loading
        harness.availability.resolve()
        assert controller.pending_gate.gate_id == "account_connected"

    def test_late_region_result_after_reset_is_dropped(self, harness):
        harness.flow.press()
        harness.flow.reset()

        assert harness.availability.resolve() is False
        assert harness.flow.state is FlowState.INACTIVE
        assert not harness.drawer.is_open

    def test_hidden_when_buy_path_blocked(self):
        harness = Harness(config=FlowConfig(blocked_paths=["/buy"]))
        assert harness.flow.visible is False
        assert Harness().flow.visible is True

    def test_press_is_tracked(self, harness):
        harness.flow.press()
        event = harness.sink.events_named("buy_button_pressed")[0]
        assert event.properties == {"account_connected": False}
