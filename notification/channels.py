#!/usr/bin/env python3
"""
Notification Channels

Every channel implements the same send() interface so the service can fan
one notification out to any configured set of channels.

Usage:
    from notification.channels import NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('webhook')
    channel.send(recipient, subject, body, metadata)
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
from datetime import datetime, timezone
import logging
import os
import urllib.parse
import ipaddress
import socket

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


def _validate_webhook_url(url: str) -> bool:
    """
    Reject non-http(s) URLs and hosts resolving to private or loopback
    addresses, unless NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS is set.
    """
    try:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            logger.error(f"Invalid URL scheme: {parsed.scheme}")
            return False
        if not parsed.hostname:
            logger.error("URL missing hostname")
            return False

        if os.environ.get('NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS', '').lower() in ('true', '1', 'yes'):
            return True

        try:
            for _, _, _, _, sockaddr in socket.getaddrinfo(parsed.hostname, None):
                ip = ipaddress.ip_address(sockaddr[0])
                if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local:
                    logger.error(f"URL resolves to private/reserved IP: {ip}")
                    return False
        except socket.gaierror:
            logger.error(f"Could not resolve hostname: {parsed.hostname}")
            return False

        return True
    except Exception as e:
        logger.error(f"URL validation error: {e}")
        return False


class NotificationChannel(ABC):
    """Abstract base class for all notification channels."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        """
        Send a notification through this channel.

        Args:
            recipient: Volunteer id for in_app, URL for webhook
            subject: Notification title
            body: Notification message
            metadata: type, priority, related_event_id and extra payload

        Returns:
            True if sent successfully, False otherwise
        """
        pass


class InAppChannel(NotificationChannel):
    """Stores the notification in the database for in-app display."""

    @property
    def channel_type(self) -> str:
        return 'in_app'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        from database.database import db_session_scope
        from database.repositories import NotificationRepository

        try:
            with db_session_scope() as session:
                NotificationRepository(session).create(
                    recipient_id=recipient,
                    type=metadata.get('type', 'system'),
                    priority=metadata.get('priority', 'normal'),
                    title=subject,
                    message=body,
                    related_event_id=metadata.get('related_event_id'),
                    payload=metadata.get('payload', {}),
                )
            logger.info(f"[IN_APP] Volunteer: {recipient}, Title: {subject}")
            return True
        except Exception as e:
            logger.error(f"Failed to store in-app notification for {recipient}: {e}")
            return False


class WebhookChannel(NotificationChannel):
    """Posts the notification as JSON to a webhook URL."""

    @property
    def channel_type(self) -> str:
        return 'webhook'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        try:
            webhook_url = recipient
            if not _validate_webhook_url(webhook_url):
                logger.error(f"Invalid or unsafe webhook URL: {webhook_url}")
                return False

            payload = {
                'type': metadata.get('type'),
                'priority': metadata.get('priority'),
                'title': subject,
                'message': body,
                'recipient_id': metadata.get('recipient_id'),
                'related_event_id': metadata.get('related_event_id'),
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'payload': metadata.get('payload', {}),
            }

            response = requests.post(
                webhook_url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
            response.raise_for_status()

            parsed = urllib.parse.urlparse(webhook_url)
            logger.info(f"Webhook sent to {parsed.scheme}://{parsed.hostname}{parsed.path}")
            return True

        except Exception as e:
            logger.error(f"Failed to send webhook: {e}")
            return False


class LogChannel(NotificationChannel):
    """Writes notifications to the log only (local runs and dry runs)."""

    @property
    def channel_type(self) -> str:
        return 'log'

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        logger.info(f"[NOTIFY] to={recipient} type={metadata.get('type')} title={subject!r}")
        return True


class NotificationChannelFactory:
    """
    Factory for notification channels.

    New channels are added with register_channel() without touching the
    service.
    """

    _channels: Dict[str, type] = {
        'in_app': InAppChannel,
        'webhook': WebhookChannel,
        'log': LogChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str, timeout: int = DEFAULT_TIMEOUT_SECONDS) -> NotificationChannel:
        """
        Get a notification channel instance by type.

        `timeout` bounds any network call the channel makes.

        Raises:
            ValueError: If channel type is not registered
        """
        channel_class = cls._channels.get(channel_type.lower())
        if not channel_class:
            raise ValueError(f"Unknown channel type: {channel_type}. "
                             f"Available: {', '.join(cls._channels.keys())}")
        return channel_class(timeout=timeout)

    @classmethod
    def register_channel(cls, channel_type: str, channel_class: type):
        if not issubclass(channel_class, NotificationChannel):
            raise ValueError("Channel class must extend NotificationChannel")
        cls._channels[channel_type.lower()] = channel_class
        logger.info(f"Registered new channel type: {channel_type}")

    @classmethod
    def list_channels(cls) -> list:
        return list(cls._channels.keys())
