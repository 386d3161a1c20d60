#!/usr/bin/env python3
"""
Notification Service

Dispatches volunteer notifications to the configured channels, either
through a Redis Queue (processed by notification/worker.py) or inline.

Delivery is best-effort: callers emit after their transaction commits and
a failed dispatch never undoes the transition that triggered it.

Usage:
    from notification.service import NotificationService
    from notification.message_builder import NotificationMessageBuilder

    service = NotificationService(channels={'in_app': NotificationChannelConfig()})
    service.send(
        recipient_id=volunteer_id,
        message=NotificationMessageBuilder.checked_in("Beach Cleanup"),
        related_event_id=event_id,
    )
"""

import os
import logging
import uuid
from typing import Optional, Dict, Any, List

# RQ imports
try:
    from redis import Redis
    from rq import Queue, Retry
    RQ_AVAILABLE = True
except ImportError:
    RQ_AVAILABLE = False

from core.config_loader import NotificationChannelConfig, NotificationConfig
from notification.channels import DEFAULT_TIMEOUT_SECONDS, NotificationChannelFactory
from notification.message_builder import NotificationMessage

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Fans a NotificationMessage out to every enabled channel.

    In async mode each channel send is an RQ job; otherwise it runs inline
    through process_notification_task.
    """

    def __init__(
        self,
        channels: Optional[Dict[str, NotificationChannelConfig]] = None,
        redis_url: Optional[str] = None,
        use_async_queue: bool = False,
        queue_name: str = 'notifications',
        request_timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    ):
        """
        Initialize notification service.

        Args:
            channels: Channel name -> config; defaults to in_app only
            redis_url: Redis connection URL
            use_async_queue: Whether to use the RQ queue or sync mode
            queue_name: RQ queue the worker listens on
            request_timeout_seconds: HTTP timeout handed to the webhook channel
        """
        self.channels = channels if channels is not None else {'in_app': NotificationChannelConfig()}
        self.redis_url = redis_url or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
        self.request_timeout_seconds = request_timeout_seconds

        if not use_async_queue:
            logger.info("Async queue disabled via config. Using sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False
        elif RQ_AVAILABLE:
            try:
                self.redis_conn = Redis.from_url(self.redis_url)
                # Validate connection with ping before using
                self.redis_conn.ping()
                self.queue = Queue(queue_name, connection=self.redis_conn)
                self.async_mode = True
                logger.info("Notification service connected to Redis")
            except Exception as e:
                logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")
                self.redis_conn = None
                self.queue = None
                self.async_mode = False
        else:
            logger.warning("RQ not available. Using sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False

    @classmethod
    def from_config(cls, config: NotificationConfig) -> 'NotificationService':
        return cls(
            channels=config.channels,
            redis_url=config.redis_url,
            use_async_queue=config.use_async_queue,
            queue_name=config.queue_name,
            request_timeout_seconds=config.request_timeout_seconds,
        )

    def send(
        self,
        recipient_id: Any,
        message: NotificationMessage,
        related_event_id: Optional[Any] = None
    ) -> Dict[str, Optional[str]]:
        """
        Send a notification to a volunteer on every enabled channel.

        Args:
            recipient_id: Volunteer to notify
            message: Built NotificationMessage
            related_event_id: Event the notification refers to

        Returns:
            Dict mapping channel names to notification/job ids (None on failure)
        """
        results: Dict[str, Optional[str]] = {}

        for channel_type, channel_config in self.channels.items():
            if not channel_config.enabled:
                continue
            try:
                notification_data = {
                    'channel_type': channel_type,
                    'recipient': channel_config.recipient or str(recipient_id),
                    'subject': message.title,
                    'body': message.message,
                    'timeout': self.request_timeout_seconds,
                    'metadata': {
                        'recipient_id': str(recipient_id),
                        'type': message.type.value,
                        'priority': message.priority.value,
                        'related_event_id': str(related_event_id) if related_event_id is not None else None,
                        'payload': dict(message.metadata),
                    },
                }
                results[channel_type] = self._dispatch(notification_data)
            except Exception as e:
                logger.error(f"Failed to send {channel_type} notification: {e}")
                results[channel_type] = None

        return results

    def _dispatch(self, notification_data: Dict[str, Any]) -> str:
        if self.async_mode:
            retry_policy = Retry(max=3, interval=[10, 30, 60])
            job = self.queue.enqueue(
                process_notification_task,
                notification_data,
                job_timeout='2m',
                result_ttl=86400,
                retry=retry_policy
            )
            logger.info(f"Queued notification as job {job.id}")
            return job.id
        return process_notification_task(notification_data)

    def get_queue_status(self) -> Dict[str, Any]:
        """Get queue status."""
        if not self.async_mode:
            return {'status': 'sync_mode', 'queue_length': 0}

        try:
            return {
                'status': 'active',
                'queue_length': len(self.queue),
                'redis_connected': self.redis_conn.ping()
            }
        except Exception as e:
            return {'status': 'error', 'error': str(e)}


# Worker task - must be at module level for RQ
def process_notification_task(notification_data: Dict[str, Any]) -> str:
    """
    Deliver one notification through one channel (called inline or by an RQ worker).
    """
    notification_id = str(uuid.uuid4())
    channel_type = notification_data['channel_type']

    logger.info(f"Processing notification {notification_id} via {channel_type}")

    try:
        channel = NotificationChannelFactory.get_channel(
            channel_type, timeout=notification_data.get('timeout', DEFAULT_TIMEOUT_SECONDS)
        )
        success = channel.send(
            notification_data['recipient'],
            notification_data['subject'],
            notification_data['body'],
            notification_data.get('metadata', {})
        )
        if success:
            logger.info(f"Notification {notification_id} sent successfully")
        else:
            logger.error(f"Notification {notification_id} failed to send")
    except Exception as e:
        logger.error(f"Failed to process notification {notification_id}: {e}", exc_info=True)

    return notification_id


def notify_safely(
    service: Optional[NotificationService],
    recipient_id: Any,
    message: NotificationMessage,
    related_event_id: Optional[Any] = None
) -> None:
    """Send without letting a delivery failure reach the caller."""
    if service is None:
        return
    try:
        service.send(recipient_id, message, related_event_id=related_event_id)
    except Exception as e:
        logger.warning(f"Notification '{message.title}' to {recipient_id} failed: {e}")
