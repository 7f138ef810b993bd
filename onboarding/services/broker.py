"""
Publishes protocol events to the broker.

Events travel as Celery tasks named after their subject and routed to a queue
of the same name, so that each subject is consumed by its own worker pool.
"""

import json
from functools import wraps
from typing import Any, Dict, Optional

from celery import Celery
from kombu.exceptions import KombuError, OperationalError

from .. import logging
from ..context import get_application_global
from ..exceptions import PublishFailed

logger = logging.getLogger(__name__)


class BrokerSession(object):
    """Hands events to the broker through a Celery application."""

    def __init__(self, celery_app: Celery) -> None:
        """Bind the session to a Celery application."""
        self.celery_app = celery_app

    def publish(self, subject: str, payload: Dict[str, Any]) -> str:
        """
        Publish an event.

        Parameters
        ----------
        subject : str
        payload : dict
            JSON-serializable event body.

        Returns
        -------
        str
            The broker's message id.

        Raises
        ------
        :class:`.PublishFailed`
        """
        body = json.dumps(payload)
        try:
            result = self.celery_app.send_task(subject, args=[body],
                                               queue=subject)
        except (KombuError, OperationalError, OSError) as e:
            raise PublishFailed(f'Failed to publish {subject} message: '
                                f'{e}') from e
        logger.debug('Published %i-byte message on subject: %s',
                     len(body), subject)
        return str(result.id)


def get_session(celery_app: Optional[Celery] = None) -> BrokerSession:
    """Create a new :class:`BrokerSession`."""
    if celery_app is None:
        from ..factory import celery_app
    return BrokerSession(celery_app)


def current_session() -> BrokerSession:
    """Get/create :class:`.BrokerSession` for this context."""
    g = get_application_global()
    if not g:
        return get_session()
    if 'broker' not in g:
        g.broker = get_session()
    return g.broker  # type: ignore


@wraps(BrokerSession.publish)
def publish(subject: str, payload: Dict[str, Any]) -> str:
    """Publish an event."""
    return current_session().publish(subject, payload)
