"""
External collaborators

In-memory implementations of the subsystems the flows talk to: account
drawer, wallet connection, region availability and notifications.
"""

from guardflow.collaborators.availability import (
    AvailabilityClient,
    FixedAvailabilityClient,
    RegionAvailability,
)
from guardflow.collaborators.connection import (
    ConnectionSession,
    ConnectionStatus,
    UserRejectedRequest,
)
from guardflow.collaborators.drawer import AccountDrawer
from guardflow.collaborators.notifications import NotificationSink, NotificationType

__all__ = [
    "AvailabilityClient",
    "FixedAvailabilityClient",
    "RegionAvailability",
    "ConnectionSession",
    "ConnectionStatus",
    "UserRejectedRequest",
    "AccountDrawer",
    "NotificationSink",
    "NotificationType",
]
