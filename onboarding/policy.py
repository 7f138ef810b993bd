"""Delivery and retry policy for the onboarding subjects."""

from enum import Enum
from typing import Dict, Mapping, NamedTuple, Optional


class ErrorKind(Enum):
    """The ways in which a protocol stage can fail."""

    MALFORMED_EVENT = 'malformed_event'
    NOT_FOUND = 'not_found'
    PRECONDITION_UNMET = 'precondition_unmet'
    COLLABORATOR_FAILURE = 'collaborator_failure'
    UNSUPPORTED_CAPABILITY = 'unsupported_capability'
    BROADCAST_FAILURE = 'broadcast_failure'
    FAULT = 'fault'


class Disposition(Enum):
    """What to tell the broker about a delivery."""

    ACK = 'ack'
    NAK = 'nak'


DEFAULT_RETRY_POLICY: Dict[ErrorKind, bool] = {
    ErrorKind.MALFORMED_EVENT: True,
    ErrorKind.NOT_FOUND: True,
    ErrorKind.PRECONDITION_UNMET: True,
    ErrorKind.COLLABORATOR_FAILURE: True,
    ErrorKind.UNSUPPORTED_CAPABILITY: True,
    # A registry transaction that failed to broadcast is acknowledged anyway.
    ErrorKind.BROADCAST_FAILURE: False,
    ErrorKind.FAULT: True,
}
"""Whether a failure of each kind should be redelivered."""


def retry_policy(config: Optional[Mapping] = None) -> Dict[ErrorKind, bool]:
    """Build the retry table, applying ``RETRY_BROADCAST_FAILURES``."""
    policy = dict(DEFAULT_RETRY_POLICY)
    if config is not None and _truthy(config.get('RETRY_BROADCAST_FAILURES')):
        policy[ErrorKind.BROADCAST_FAILURE] = True
    return policy


def disposition_for(kind: ErrorKind,
                    policy: Optional[Mapping[ErrorKind, bool]] = None) \
        -> Disposition:
    """Get the broker disposition for a failure of ``kind``."""
    table = DEFAULT_RETRY_POLICY if policy is None else policy
    return Disposition.NAK if table.get(kind, True) else Disposition.ACK


class DeliveryPolicy(NamedTuple):
    """Broker parameters for one subject."""

    ack_wait: int
    """Seconds a delivery may remain unacknowledged before redelivery."""

    max_in_flight: int
    """Upper bound on unacknowledged deliveries held by the pool."""

    max_deliveries: int
    """Total delivery attempts before the message is dead-lettered."""

    concurrency: int = 1
    """Number of workers bound to the subject."""

    redelivery_delay: int = 0
    """Seconds to wait before redelivering a negatively-acknowledged message."""

    @property
    def max_retries(self) -> int:
        """Redeliveries permitted after the first attempt."""
        return max(self.max_deliveries - 1, 0)

    @property
    def pool_size(self) -> int:
        """Workers actually started; never more than ``max_in_flight``."""
        return max(min(self.concurrency, self.max_in_flight), 1)

    @classmethod
    def from_config(cls, prefix: str, config: Mapping, ack_wait: int = 5,
                    max_in_flight: int = 2048,
                    max_deliveries: int = 10) -> 'DeliveryPolicy':
        """
        Load the policy for a subject from configuration.

        Parameters
        ----------
        prefix : str
            Configuration prefix, e.g. ``ORGANIZATION_CREATED``.
        config : dict-like
        ack_wait : int
        max_in_flight : int
        max_deliveries : int
            Used where the configuration has no value for the subject.
        """
        default_concurrency = config.get('CONSUMER_CONCURRENCY', 1)
        return cls(
            ack_wait=int(config.get(f'{prefix}_ACK_WAIT', ack_wait)),
            max_in_flight=int(config.get(f'{prefix}_MAX_IN_FLIGHT',
                                         max_in_flight)),
            max_deliveries=int(config.get(f'{prefix}_MAX_DELIVERIES',
                                          max_deliveries)),
            concurrency=int(config.get(f'{prefix}_CONCURRENCY',
                                       default_concurrency)),
            redelivery_delay=int(config.get('REDELIVERY_DELAY', 0))
        )


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)
