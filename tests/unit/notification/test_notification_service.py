#!/usr/bin/env python3
"""
Tests for the notification system.

Tests cover:
1. Message builder text
2. Channels (webhook, log, in-app) and the channel factory
3. Service fan-out in sync mode and queue mode
4. Best-effort delivery

Usage:
    python -m pytest tests/unit/notification/test_notification_service.py -v
"""

import os
import unittest
from unittest.mock import MagicMock, Mock, patch

from core.config_loader import NotificationChannelConfig, NotificationConfig
from core.enums import NotificationType
from notification import (
    InAppChannel, LogChannel, NotificationChannel, NotificationChannelFactory,
    NotificationMessageBuilder, NotificationPriority, NotificationService, WebhookChannel,
    notify_safely, process_notification_task,
)


class TestMessageBuilder(unittest.TestCase):

    def test_assignment_created(self):
        message = NotificationMessageBuilder.assignment_created("Beach Cleanup")
        self.assertEqual(message.title, "Joined: Beach Cleanup")
        self.assertEqual(message.type, NotificationType.ASSIGNMENT)
        self.assertEqual(message.priority, NotificationPriority.HIGH)

    def test_marked_no_show(self):
        message = NotificationMessageBuilder.marked_no_show("Food Drive")
        self.assertEqual(message.title, "Marked as No-Show")
        self.assertEqual(message.type, NotificationType.SYSTEM)
        self.assertIn('"Food Drive"', message.message)

    def test_checked_out_carries_hours(self):
        message = NotificationMessageBuilder.checked_out("Food Drive", 4.5)
        self.assertEqual(message.metadata, {'hours_worked': 4.5})
        self.assertIn("4.5", message.message)

    def test_event_finalized_outcomes(self):
        no_show = NotificationMessageBuilder.event_finalized("Food Drive", 'no_show')
        completed = NotificationMessageBuilder.event_finalized("Food Drive", 'completed', 8.0)
        self.assertIn("no check-in", no_show.message)
        self.assertIn("8.0 hours", completed.message)


class TestNotificationChannels(unittest.TestCase):

    def setUp(self):
        self.original_env = dict(os.environ)

    def tearDown(self):
        os.environ.clear()
        os.environ.update(self.original_env)

    def test_factory_lists_builtin_channels(self):
        self.assertTrue({'in_app', 'webhook', 'log'} <= set(NotificationChannelFactory.list_channels()))
        self.assertIsInstance(NotificationChannelFactory.get_channel('LOG'), LogChannel)

    def test_factory_unknown_channel(self):
        with self.assertRaises(ValueError):
            NotificationChannelFactory.get_channel('carrier_pigeon')

    def test_register_custom_channel(self):
        class SmsChannel(NotificationChannel):
            @property
            def channel_type(self):
                return 'sms'

            def send(self, recipient, subject, body, metadata):
                return True

        NotificationChannelFactory.register_channel('sms', SmsChannel)
        try:
            self.assertIsInstance(NotificationChannelFactory.get_channel('sms'), SmsChannel)
        finally:
            NotificationChannelFactory._channels.pop('sms', None)

    def test_register_rejects_non_channel(self):
        with self.assertRaises(ValueError):
            NotificationChannelFactory.register_channel('bad', dict)

    def test_webhook_rejects_bad_scheme(self):
        self.assertFalse(WebhookChannel().send('ftp://example.org/hook', 'Title', 'Body', {}))

    @patch('notification.channels.requests.post')
    def test_webhook_posts_json(self, mock_post):
        os.environ['NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS'] = 'true'
        mock_post.return_value = Mock(raise_for_status=Mock())

        sent = WebhookChannel(timeout=3).send(
            'https://hooks.example.org/volunteers', 'Checked in', 'Thanks',
            {'type': 'attendance', 'priority': 'normal', 'recipient_id': 'v1'}
        )

        self.assertTrue(sent)
        kwargs = mock_post.call_args.kwargs
        self.assertEqual(kwargs['json']['title'], 'Checked in')
        self.assertEqual(kwargs['timeout'], 3)

    @patch('notification.channels.requests.post', side_effect=ConnectionError("refused"))
    def test_webhook_failure_returns_false(self, _):
        os.environ['NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS'] = 'true'
        self.assertFalse(WebhookChannel().send('https://hooks.example.org/v', 'T', 'B', {}))

    @patch('database.database.db_session_scope')
    def test_in_app_persists_notification(self, mock_scope):
        session = MagicMock()
        mock_scope.return_value.__enter__.return_value = session

        sent = InAppChannel().send(
            '4f8a0c2e-0000-4000-8000-000000000000', 'Marked as No-Show', 'Body',
            {'type': 'system', 'priority': 'high'}
        )

        self.assertTrue(sent)
        stored = session.add.call_args.args[0]
        self.assertEqual(stored.title, 'Marked as No-Show')
        self.assertEqual(stored.priority, 'high')


class TestNotificationService(unittest.TestCase):

    def test_defaults_to_sync_in_app(self):
        service = NotificationService()
        self.assertFalse(service.async_mode)
        self.assertEqual(list(service.channels), ['in_app'])
        self.assertEqual(service.get_queue_status(), {'status': 'sync_mode', 'queue_length': 0})

    @patch('notification.service.process_notification_task', return_value='n-1')
    def test_sync_send_fans_out_to_enabled_channels(self, mock_task):
        service = NotificationService(channels={
            'in_app': NotificationChannelConfig(),
            'webhook': NotificationChannelConfig(recipient='https://hooks.example.org/v'),
            'log': NotificationChannelConfig(enabled=False),
        })

        results = service.send('v1', NotificationMessageBuilder.checked_in("Food Drive"), related_event_id='e1')

        self.assertEqual(results, {'in_app': 'n-1', 'webhook': 'n-1'})
        payloads = [c.args[0] for c in mock_task.call_args_list]
        self.assertEqual(payloads[0]['recipient'], 'v1')
        self.assertEqual(payloads[1]['recipient'], 'https://hooks.example.org/v')
        self.assertEqual(payloads[0]['metadata']['related_event_id'], 'e1')
        self.assertEqual(payloads[0]['metadata']['type'], 'attendance')
        self.assertEqual(payloads[0]['metadata']['priority'], 'normal')
        self.assertEqual(payloads[1]['timeout'], 10)

    @patch('notification.service.Redis')
    @patch('notification.service.Queue')
    def test_async_mode_enqueues(self, mock_queue_cls, mock_redis):
        mock_redis.from_url.return_value.ping.return_value = True
        queue = mock_queue_cls.return_value
        queue.enqueue.return_value = Mock(id='job-7')

        service = NotificationService.from_config(NotificationConfig(use_async_queue=True))
        results = service.send('v1', NotificationMessageBuilder.marked_no_show("Food Drive"))

        self.assertTrue(service.async_mode)
        self.assertEqual(results, {'in_app': 'job-7'})
        self.assertIs(queue.enqueue.call_args.args[0], process_notification_task)

    @patch('notification.service.Redis')
    def test_redis_failure_falls_back_to_sync(self, mock_redis):
        mock_redis.from_url.return_value.ping.side_effect = ConnectionError("no redis")
        service = NotificationService(use_async_queue=True)
        self.assertFalse(service.async_mode)

    @patch('notification.channels.requests.post')
    def test_configured_timeout_reaches_webhook(self, mock_post):
        os.environ['NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS'] = 'true'
        mock_post.return_value = Mock(raise_for_status=Mock())
        service = NotificationService.from_config(NotificationConfig(
            channels={'webhook': NotificationChannelConfig(recipient='https://hooks.example.org/v')},
            request_timeout_seconds=4,
        ))

        try:
            service.send('v1', NotificationMessageBuilder.marked_no_show("Food Drive"))
        finally:
            os.environ.pop('NOTIFICATION_ALLOW_PRIVATE_WEBHOOKS', None)

        self.assertEqual(mock_post.call_args.kwargs['timeout'], 4)
        self.assertEqual(mock_post.call_args.kwargs['json']['priority'], 'high')

    def test_process_task_survives_channel_error(self):
        with patch.object(NotificationChannelFactory, 'get_channel', side_effect=ValueError("gone")):
            notification_id = process_notification_task({
                'channel_type': 'log', 'recipient': 'v1', 'subject': 'S', 'body': 'B', 'metadata': {},
            })
        self.assertTrue(notification_id)

    def test_notify_safely_swallows_errors(self):
        service = Mock()
        service.send.side_effect = RuntimeError("boom")
        notify_safely(service, 'v1', NotificationMessageBuilder.checked_in("Food Drive"))
        service.send.assert_called_once()

    def test_notify_safely_without_service(self):
        notify_safely(None, 'v1', NotificationMessageBuilder.checked_in("Food Drive"))


if __name__ == '__main__':
    unittest.main()
