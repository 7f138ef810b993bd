"""
The subjects this service consumes, and how each one is handled.

:func:`init_subscriptions` builds the complete list; nothing is subscribed
until a worker runner is handed that list.
"""

from typing import Any, Callable, List, Mapping, NamedTuple, Optional

from . import events
from .context import get_application_config
from .policy import DeliveryPolicy
from .process import keyexchange, registration, vaults


class Subscription(NamedTuple):
    """A subject, the stage that handles it, and its delivery policy."""

    subject: str
    handler: Callable[[Any], Any]
    policy: DeliveryPolicy


def init_subscriptions(config: Optional[Mapping] = None) \
        -> List[Subscription]:
    """
    Build the subscription registry from configuration.

    Parameters
    ----------
    config : dict-like
        Defaults to the current application config (or the environment).
    """
    if config is None:
        config = get_application_config()
    return [
        Subscription(
            events.ORGANIZATION_CREATED,
            vaults.provision_vault,
            DeliveryPolicy.from_config('ORGANIZATION_CREATED', config)
        ),
        Subscription(
            events.KEY_EXCHANGE_INIT,
            keyexchange.initiate_exchange,
            DeliveryPolicy.from_config('KEY_EXCHANGE_INIT', config)
        ),
        Subscription(
            events.KEY_EXCHANGE_COMPLETE,
            keyexchange.complete_exchange,
            DeliveryPolicy.from_config('KEY_EXCHANGE_COMPLETE', config)
        ),
        Subscription(
            events.ORGANIZATION_REGISTRATION,
            registration.register_organization,
            DeliveryPolicy.from_config('ORGANIZATION_REGISTRATION', config,
                                       ack_wait=60)
        ),
    ]


def get_subscription(subject: str,
                     subscriptions: List[Subscription]) -> Subscription:
    """Find the subscription for ``subject``."""
    for subscription in subscriptions:
        if subscription.subject == subject:
            return subscription
    raise KeyError(f'No subscription for subject {subject}')
