#!/usr/bin/env python3
"""
Notification Message Builder - Volunteer-facing notification text.

Each builder returns a NotificationMessage; the service attaches the
recipient and hands it to the configured channels.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from core.enums import NotificationType


class NotificationPriority(Enum):
    """Priority levels for notifications."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class NotificationMessage:
    type: NotificationType
    priority: NotificationPriority
    title: str
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class NotificationMessageBuilder:
    """Builds the messages sent on assignment and attendance transitions."""

    @staticmethod
    def assignment_created(event_title: str) -> NotificationMessage:
        return NotificationMessage(
            type=NotificationType.ASSIGNMENT,
            priority=NotificationPriority.HIGH,
            title=f"Joined: {event_title}",
            message=f"You have successfully joined {event_title}. Check your schedule for details.",
        )

    @staticmethod
    def assignment_status_changed(event_title: str, status: str) -> NotificationMessage:
        return NotificationMessage(
            type=NotificationType.ASSIGNMENT,
            priority=NotificationPriority.NORMAL,
            title=f"Assignment {status}: {event_title}",
            message=f"Your assignment for {event_title} is now {status}.",
        )

    @staticmethod
    def checked_in(event_title: str) -> NotificationMessage:
        return NotificationMessage(
            type=NotificationType.ATTENDANCE,
            priority=NotificationPriority.NORMAL,
            title=f"Checked in: {event_title}",
            message=f"You checked in to {event_title}. Thank you for volunteering!",
        )

    @staticmethod
    def checked_out(event_title: str, hours_worked: float) -> NotificationMessage:
        return NotificationMessage(
            type=NotificationType.ATTENDANCE,
            priority=NotificationPriority.NORMAL,
            title=f"Checked out: {event_title}",
            message=f"You checked out of {event_title}. Hours worked: {hours_worked}",
            metadata={'hours_worked': hours_worked},
        )

    @staticmethod
    def marked_no_show(event_title: str) -> NotificationMessage:
        return NotificationMessage(
            type=NotificationType.SYSTEM,
            priority=NotificationPriority.HIGH,
            title="Marked as No-Show",
            message=(
                f'You were marked as a no-show for the event "{event_title}". '
                "Please contact us if this was an error."
            ),
        )

    @staticmethod
    def event_finalized(event_title: str, outcome: str, hours_worked: Optional[float] = None) -> NotificationMessage:
        if outcome == 'no_show':
            message = f'"{event_title}" has ended and no check-in was recorded for you.'
        else:
            message = f'"{event_title}" has ended. You were checked out automatically after {hours_worked} hours.'
        return NotificationMessage(
            type=NotificationType.EVENT_UPDATE,
            priority=NotificationPriority.NORMAL,
            title=f"Event completed: {event_title}",
            message=message,
            metadata={'outcome': outcome, 'hours_worked': hours_worked},
        )
