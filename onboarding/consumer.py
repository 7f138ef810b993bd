"""
The worker boundary: turns stage outcomes into broker acknowledgments.

Stages never acknowledge messages themselves. :func:`dispatch` decodes the
message, applies idempotency markers, runs the stage, and settles the
:class:`Delivery` according to the retry policy.
"""

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from . import events, logging
from .exceptions import OnboardingError
from .policy import Disposition, ErrorKind, disposition_for
from .services.dedup import DedupStore, DedupStoreError

if TYPE_CHECKING:
    from .registry import Subscription

logger = logging.getLogger(__name__)


class Delivery(object):
    """A single delivery of a message on a subject."""

    def __init__(self, subject: str, data: Union[str, bytes],
                 attempt: int = 1) -> None:
        """
        Wrap a received message.

        Parameters
        ----------
        subject : str
        data : str or bytes
            The raw message body.
        attempt : int
            1 for the first delivery, incremented on each redelivery.
        """
        self.subject = subject
        self.data = data
        self.attempt = attempt
        self.disposition: Optional[Disposition] = None

    def ack(self) -> Disposition:
        """Tell the broker that the delivery is complete."""
        return self.settle(Disposition.ACK)

    def nak(self) -> Disposition:
        """Ask the broker to redeliver the message."""
        return self.settle(Disposition.NAK)

    def settle(self, disposition: Disposition) -> Disposition:
        """Record the outcome of the delivery; only the first one counts."""
        if self.disposition is not None:
            raise RuntimeError(f'delivery on {self.subject} is already '
                               f'settled ({self.disposition.value})')
        self.disposition = disposition
        return disposition


def dispatch(subscription: 'Subscription', delivery: Delivery,
             store: Optional[DedupStore] = None,
             retry: Optional[Mapping[ErrorKind, bool]] = None) -> Disposition:
    """
    Handle one delivery with the subscription's stage.

    Parameters
    ----------
    subscription : :class:`.Subscription`
    delivery : :class:`Delivery`
    store : :class:`.DedupStore`
        Idempotency markers. If None, every delivery runs the stage.
    retry : dict
        Maps :class:`.ErrorKind` to whether the message should be redelivered.
        Defaults to :data:`.DEFAULT_RETRY_POLICY`.

    Returns
    -------
    :class:`.Disposition`
    """
    subject = subscription.subject
    logger.debug('Consuming %i-byte message on subject: %s',
                 len(delivery.data), subject)
    event: Optional[events.Event] = None
    key: Optional[str] = None
    try:
        event = events.decode(subject, delivery.data)
        candidate = None
        if store is not None:
            candidate = events.idempotency_key(subject, event)
        if candidate is not None:
            if store.is_complete(candidate):
                logger.info('Message on %s was already handled; skipping',
                            subject, extra=_context(delivery, event))
                return delivery.ack()
            if not store.claim(candidate, subscription.policy.ack_wait):
                logger.warning('Message on %s is in flight elsewhere',
                               subject, extra=_context(
                                   delivery, event,
                                   disposition=Disposition.NAK))
                return delivery.nak()
            key = candidate
        subscription.handler(event)
    except OnboardingError as e:
        disposition = disposition_for(e.kind, retry)
        logger.warning('Failed to handle message on %s; %s', subject, e,
                       extra=_context(delivery, event, e.kind, disposition))
        _settle_marker(store, key, disposition)
        return delivery.settle(disposition)
    except Exception as e:
        logger.error('Recovered in message handler for %s; %s', subject, e,
                     exc_info=True,
                     extra=_context(delivery, event, ErrorKind.FAULT,
                                    Disposition.NAK))
        _settle_marker(store, key, Disposition.NAK)
        return delivery.nak()

    _settle_marker(store, key, Disposition.ACK)
    logger.debug('Handled message on %s', subject,
                 extra=_context(delivery, event))
    return delivery.ack()


def _settle_marker(store: Optional[DedupStore], key: Optional[str],
                   disposition: Disposition) -> None:
    if store is None or key is None:
        return
    try:
        if disposition is Disposition.ACK:
            store.complete(key)
        else:
            store.release(key)
    except DedupStoreError as e:
        # The claim lapses with the acknowledgment window.
        logger.warning('Could not settle idempotency marker %s; %s', key, e)


def _context(delivery: Delivery, event: Optional[events.Event],
             kind: Optional[ErrorKind] = None,
             disposition: Optional[Disposition] = None) -> Dict[str, Any]:
    context: Dict[str, Any] = {
        'subject': delivery.subject,
        'delivery': delivery.attempt,
    }
    if event is not None:
        context['organization_id'] = event.organization_id
        if event.event_id is not None:
            context['event_id'] = event.event_id
    if kind is not None:
        context['error_kind'] = kind.value
    if disposition is not None:
        context['disposition'] = disposition.value
    return context
