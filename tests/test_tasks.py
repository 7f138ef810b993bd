"""Tests for :mod:`onboarding.tasks`."""

import json
from unittest import TestCase, mock

from celery import Celery
from celery.exceptions import MaxRetriesExceededError, Retry

from onboarding import events, tasks
from onboarding.exceptions import BroadcastFailed, VaultError
from onboarding.policy import DeliveryPolicy
from onboarding.registry import Subscription

from .util import ORG_ID

BODY = json.dumps({'organization_id': ORG_ID})


class TestBindSubscription(TestCase):
    """Each subscription is consumed by a Celery task."""

    def setUp(self) -> None:
        """Bind a subscription with a mock stage to a fresh Celery app."""
        self.celery_app = Celery('test')
        self.handler = mock.MagicMock()
        policy = DeliveryPolicy(ack_wait=5, max_in_flight=2048,
                                max_deliveries=3, redelivery_delay=2)
        self.subscription = Subscription(events.ORGANIZATION_CREATED,
                                         self.handler, policy)
        self.task = tasks.bind_subscription(self.celery_app,
                                            self.subscription)

        patches = [mock.patch.object(tasks, 'dedup'),
                   mock.patch.object(tasks, 'datastore')]
        self.mock_dedup, self.mock_datastore = \
            [patch.start() for patch in patches]
        for patch in patches:
            self.addCleanup(patch.stop)
        self.mock_dedup.current_store.return_value = None

    def test_options(self) -> None:
        """The task carries the subject's delivery policy."""
        self.assertEqual(self.task.name, events.ORGANIZATION_CREATED)
        self.assertTrue(self.task.acks_late)
        self.assertTrue(self.task.reject_on_worker_lost)
        self.assertEqual(self.task.max_retries, 2)
        self.assertEqual(self.task.default_retry_delay, 2)
        self.assertEqual(self.task.soft_time_limit, 5)

    def test_ack(self) -> None:
        """A handled message is acknowledged by returning."""
        self.assertEqual(self.task(BODY), 'ack')
        self.assertEqual(self.handler.call_count, 1)
        self.assertEqual(self.mock_datastore.close_session.call_count, 1)

    def test_acknowledged_failure(self) -> None:
        """A failure that is not retried is acknowledged."""
        self.handler.side_effect = BroadcastFailed('rejected')
        self.assertEqual(self.task(BODY), 'ack')

    def test_nak(self) -> None:
        """A negative acknowledgment asks Celery to redeliver."""
        self.handler.side_effect = VaultError('down')
        with self.assertRaises(Retry):
            self.task(BODY)
        self.assertEqual(self.mock_datastore.close_session.call_count, 1)

    def test_dead_letter(self) -> None:
        """Exhausted redelivery is logged and the message dropped."""
        self.handler.side_effect = VaultError('down')
        with mock.patch.object(self.task, 'retry',
                               side_effect=MaxRetriesExceededError):
            with self.assertLogs('onboarding.tasks', level='ERROR'):
                self.assertEqual(self.task(BODY), 'nak')

    def test_routes(self) -> None:
        """Each subject is routed to its own queue."""
        tasks.bind_subscriptions(self.celery_app, [Subscription(
            events.KEY_EXCHANGE_INIT, self.handler,
            DeliveryPolicy(5, 2048, 10)
        )])
        self.assertEqual(
            self.celery_app.conf.task_routes[events.KEY_EXCHANGE_INIT],
            {'queue': events.KEY_EXCHANGE_INIT}
        )
        self.assertIn(events.KEY_EXCHANGE_INIT, self.celery_app.tasks)
