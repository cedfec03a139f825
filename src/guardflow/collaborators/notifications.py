"""
Notification and Telemetry Sink

In-memory stand-in for the app notification store and analytics emitter.
Flows push notifications and events here; hosts subscribe to forward them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from guardflow.logging_config import get_logger
from guardflow.terminal import CompletionResult

logger = get_logger("notifications")


class NotificationType(Enum):
    """App notification kinds emitted by the built-in flows."""

    TRANSFER_CURRENCY_PENDING = "transfer_currency_pending"
    TRANSFER_NFT_PENDING = "transfer_nft_pending"


@dataclass
class AppNotification:
    """A user-facing notification."""
    type: NotificationType
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class AnalyticsEvent:
    """A telemetry event."""
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


class NotificationSink:
    """Collects notifications and analytics events."""

    def __init__(self):
        self.notifications: List[AppNotification] = []
        self.events: List[AnalyticsEvent] = []
        self._listeners: List[Callable[[Any], None]] = []

    def subscribe(self, listener: Callable[[Any], None]):
        """Receive every notification and event as it is recorded."""
        self._listeners.append(listener)

    def push_notification(self, notification_type: NotificationType, **payload) -> AppNotification:
        notification = AppNotification(type=notification_type, payload=payload)
        self.notifications.append(notification)
        logger.info("Notification: %s", notification_type.value)
        self._emit(notification)
        return notification

    def track(self, name: str, **properties) -> AnalyticsEvent:
        event = AnalyticsEvent(name=name, properties=properties)
        self.events.append(event)
        logger.debug("Event %s %s", name, properties)
        self._emit(event)
        return event

    def on_completed(self, result: CompletionResult):
        """Completion listener for FlowController."""
        self.track("flow_completed", flow=result.flow_name, lifetime_id=result.lifetime_id)

    def events_named(self, name: str) -> List[AnalyticsEvent]:
        return [e for e in self.events if e.name == name]

    def last_notification(self) -> Optional[AppNotification]:
        return self.notifications[-1] if self.notifications else None

    def _emit(self, item: Any):
        for listener in list(self._listeners):
            listener(item)
