"""
Notification Module

Best-effort volunteer notifications over pluggable channels, processed
inline or through a Redis Queue.

Usage:
    from notification import NotificationService, NotificationMessageBuilder

    service = NotificationService()
    service.send(volunteer_id, NotificationMessageBuilder.marked_no_show("Food Drive"), event_id)

    # Get a channel
    channel = NotificationChannelFactory.get_channel('webhook')
    channel.send('https://hooks.example.org/volunteers', 'Title', 'Body', {})
"""

from notification.channels import (
    NotificationChannel,
    InAppChannel,
    WebhookChannel,
    LogChannel,
    NotificationChannelFactory,
)

from notification.message_builder import (
    NotificationMessage,
    NotificationMessageBuilder,
    NotificationPriority,
)

from notification.service import (
    NotificationService,
    process_notification_task,
    notify_safely,
)

__all__ = [
    # Channels
    'NotificationChannel',
    'InAppChannel',
    'WebhookChannel',
    'LogChannel',
    'NotificationChannelFactory',
    # Messages
    'NotificationMessage',
    'NotificationMessageBuilder',
    'NotificationPriority',
    # Service
    'NotificationService',
    'process_notification_task',
    'notify_safely',
]
