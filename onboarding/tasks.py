"""
Binds subscriptions to Celery tasks.

Each subject is a task registered under the subject name and routed to a queue
of the same name. A task that returns has acknowledged its message; a
negative acknowledgment is a :meth:`celery.Task.retry`.
"""

from typing import Any, Dict, Iterable, List

from celery import Celery, Task
from celery.exceptions import MaxRetriesExceededError

from . import logging
from .consumer import Delivery, dispatch
from .context import get_application_config
from .policy import Disposition, retry_policy
from .registry import Subscription
from .services import datastore, dedup

logger = logging.getLogger(__name__)


def bind_subscription(celery_app: Celery, subscription: Subscription) -> Task:
    """
    Register the Celery task that consumes ``subscription.subject``.

    Parameters
    ----------
    celery_app : :class:`celery.Celery`
    subscription : :class:`.Subscription`

    Returns
    -------
    :class:`celery.Task`
    """
    subject = subscription.subject
    policy = subscription.policy

    @celery_app.task(name=subject, bind=True, shared=False, lazy=False,
                     acks_late=True,
                     reject_on_worker_lost=True, ignore_result=True,
                     max_retries=policy.max_retries,
                     default_retry_delay=policy.redelivery_delay,
                     soft_time_limit=policy.ack_wait)
    def consume(task: Task, data: str) -> str:
        delivery = Delivery(subject, data, attempt=task.request.retries + 1)
        try:
            disposition = dispatch(subscription, delivery,
                                   store=dedup.current_store(),
                                   retry=retry_policy(get_application_config()))
        finally:
            datastore.close_session()

        if disposition is Disposition.NAK:
            try:
                raise task.retry()
            except MaxRetriesExceededError:
                logger.error('Dead letter: gave up on %s message after %i '
                             'deliveries', subject, delivery.attempt,
                             extra={'subject': subject,
                                    'delivery': delivery.attempt})
        return disposition.value

    return consume


def bind_subscriptions(celery_app: Celery,
                       subscriptions: Iterable[Subscription]) -> List[Task]:
    """Register a task and a queue route for each subscription."""
    routes: Dict[str, Any] = dict(celery_app.conf.task_routes or {})
    bound = []
    for subscription in subscriptions:
        routes[subscription.subject] = {'queue': subscription.subject}
        bound.append(bind_subscription(celery_app, subscription))
    celery_app.conf.task_routes = routes
    return bound
