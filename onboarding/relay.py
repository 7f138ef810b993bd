"""
Outbox relay.

Events written to the outbox alongside the database change that caused them
are handed to the broker here. An event stays pending until the broker has
accepted it, so a crash between the database write and the publish delays
onboarding rather than dropping it.
"""

import time
from typing import Optional

from . import logging
from .context import get_application_config
from .exceptions import DatastoreError, PublishFailed
from .services import broker, datastore

logger = logging.getLogger(__name__)


def relay_pending(batch_size: Optional[int] = None) -> int:
    """
    Publish pending outbox events, oldest first.

    The outbox id is stamped into each payload as ``event_id``.

    Parameters
    ----------
    batch_size : int
        Maximum number of events to publish. Defaults to
        ``OUTBOX_BATCH_SIZE``.

    Returns
    -------
    int
        Number of events published.
    """
    if batch_size is None:
        batch_size = int(get_application_config().get('OUTBOX_BATCH_SIZE',
                                                       100))
    published = 0
    for event in datastore.load_pending_events(batch_size):
        payload = dict(event.payload)
        payload['event_id'] = event.event_id
        try:
            broker.publish(event.subject, payload)
        except PublishFailed as e:
            logger.warning('Failed to relay outbox event %i on %s; %s',
                           event.event_id, event.subject, e)
            datastore.record_publish_failure(event.event_id, str(e))
            continue
        datastore.mark_published(event.event_id)
        published += 1
    if published:
        logger.debug('Relayed %i outbox events', published)
    return published


def run(interval: Optional[float] = None,
        iterations: Optional[int] = None) -> None:
    """
    Relay outbox events until interrupted.

    A pass that fails is logged and retried after ``interval``; events it
    did not mark as published stay pending.

    Parameters
    ----------
    interval : float
        Seconds to sleep when the outbox is drained. Defaults to
        ``OUTBOX_POLL_INTERVAL``.
    iterations : int
        Stop after this many passes. Runs forever if None.
    """
    if interval is None:
        interval = float(get_application_config().get('OUTBOX_POLL_INTERVAL',
                                                       1.0))
    passes = 0
    while iterations is None or passes < iterations:
        passes += 1
        published = 0
        try:
            published = relay_pending()
        except DatastoreError as e:
            logger.warning('Outbox relay pass failed; %s', e)
        except Exception:
            logger.exception('Unexpected error in outbox relay pass')
        finally:
            datastore.close_session()
        if not published:
            time.sleep(interval)
