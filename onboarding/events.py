"""
Protocol events exchanged over the broker.

Each event is a JSON object identified by its subject and a set of required
fields. Events produced by the outbox relay also carry ``event_id``, which is
used to derive an idempotency key.
"""

import hashlib
import json
import uuid
from typing import Any, Dict, NamedTuple, Optional, Type, Union

from .exceptions import MalformedEvent

PREFIX = 'ident'

ORGANIZATION_CREATED = f'{PREFIX}.organization.created'
KEY_EXCHANGE_INIT = f'{PREFIX}.organization.keys.exchange.init'
KEY_EXCHANGE_COMPLETE = f'{PREFIX}.organization.keys.exchange.complete'
ORGANIZATION_REGISTRATION = f'{PREFIX}.organization.registration'


class OrganizationCreated(NamedTuple):
    """An organization has been created."""

    organization_id: str
    event_id: Optional[int] = None


class KeyExchangeInit(NamedTuple):
    """Begin a key exchange between an organization and one of its peers."""

    organization_id: str
    peer_organization_id: str
    event_id: Optional[int] = None


class KeyExchangeComplete(NamedTuple):
    """
    The initiator's signed ephemeral public key, addressed to the peer.

    ``organization_id`` is the initiator; the peer consumes the event.
    """

    organization_id: str
    peer_organization_id: str
    public_key: str
    """Hex-encoded ephemeral exchange public key."""

    signature: str
    """Hex-encoded signature over the exchange public key."""

    signing_key: str
    """Public half of the initiator's exchange signing key."""

    signing_spec: str
    event_id: Optional[int] = None


class OrganizationRegistration(NamedTuple):
    """Register (or update) an organization on the on-chain registry."""

    organization_id: str
    application_id: str
    update_registry: bool = False
    event_id: Optional[int] = None


Event = Union[OrganizationCreated, KeyExchangeInit, KeyExchangeComplete,
              OrganizationRegistration]

EVENT_TYPES: Dict[str, Type] = {
    ORGANIZATION_CREATED: OrganizationCreated,
    KEY_EXCHANGE_INIT: KeyExchangeInit,
    KEY_EXCHANGE_COMPLETE: KeyExchangeComplete,
    ORGANIZATION_REGISTRATION: OrganizationRegistration,
}

OPTIONAL_FIELDS = ('event_id', 'update_registry')


def decode(subject: str, data: Union[str, bytes, dict]) -> Event:
    """
    Parse a message body received on ``subject``.

    Parameters
    ----------
    subject : str
    data : str, bytes, or dict
        The JSON message body.

    Returns
    -------
    NamedTuple
        One of the event classes in :data:`EVENT_TYPES`.

    Raises
    ------
    :class:`.MalformedEvent`
        If the body is not a JSON object, or a required field is missing or is
        not a string.
    """
    if subject not in EVENT_TYPES:
        raise MalformedEvent(f'no event is defined for subject {subject}')
    if isinstance(data, (str, bytes)):
        try:
            params = json.loads(data)
        except ValueError as e:
            raise MalformedEvent(f'failed to unmarshal {subject} message; '
                                 f'{e}') from e
    else:
        params = data
    if not isinstance(params, dict):
        raise MalformedEvent(f'{subject} message is not a JSON object')

    cls = EVENT_TYPES[subject]
    values: Dict[str, Any] = {}
    for field in cls._fields:
        if field in OPTIONAL_FIELDS:
            continue
        value = params.get(field)
        if not isinstance(value, str):
            raise MalformedEvent(f'failed to parse {field} from {subject} '
                                 'message')
        values[field] = value

    if cls is OrganizationRegistration:
        try:
            uuid.UUID(values['application_id'])
        except ValueError as e:
            raise MalformedEvent('failed to parse application uuid from '
                                 f'{subject} message') from e
        # Anything but a JSON boolean leaves the default in place.
        if isinstance(params.get('update_registry'), bool):
            values['update_registry'] = params['update_registry']

    event_id = params.get('event_id')
    if isinstance(event_id, int) and not isinstance(event_id, bool):
        values['event_id'] = event_id
    return cls(**values)


def encode(event: Event) -> Dict[str, Any]:
    """Generate the JSON-serializable body for ``event``."""
    return {field: value for field, value in event._asdict().items()
            if value is not None}


def subject_of(event: Event) -> str:
    """Get the subject on which ``event`` is published."""
    for subject, cls in EVENT_TYPES.items():
        if isinstance(event, cls):
            return subject
    raise ValueError(f'{type(event).__name__} is not a protocol event')


def idempotency_key(subject: str, event: Event) -> Optional[str]:
    """
    Derive the idempotency key for an event, if it carries an ``event_id``.

    The key covers the subject, the organization and peer (where present),
    and the monotonic outbox id.
    """
    if event.event_id is None:
        return None
    parts = [subject, event.organization_id,
             getattr(event, 'peer_organization_id', ''),
             str(event.event_id)]
    return hashlib.sha256('|'.join(parts).encode('utf-8')).hexdigest()
