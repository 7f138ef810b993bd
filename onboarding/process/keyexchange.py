"""
Pairwise key exchange between organizations that share an application.

The initiator generates a single-use exchange key, signs its public half with
its long-lived exchange signing key, and publishes both toward the peer. The
peer verifies and derives the shared secret, provided that the vault offers
the derivation.
"""

from .. import domain, events, logging
from ..context import get_application_config
from ..exceptions import MalformedEvent, UnsupportedCapability, VaultError
from ..services import broker, vault
from .common import organization_token, resolve_organization, \
    resolve_signing_key, resolve_vault

logger = logging.getLogger(__name__)

EXCHANGE_KEY_NAME = 'ekho single-use c25519 key exchange'
SHARED_SECRET_NAME = 'ekho shared secret'


def initiate_exchange(event: events.KeyExchangeInit) \
        -> events.KeyExchangeComplete:
    """
    Begin the exchange from ``organization_id`` toward its peer.

    Parameters
    ----------
    event : :class:`.KeyExchangeInit`

    Returns
    -------
    :class:`.KeyExchangeComplete`
        The event that was published for the peer.

    Raises
    ------
    :class:`.NotFound`
        If the organization, its vault or its exchange signing key cannot be
        resolved. Nothing is published in that case.
    :class:`.CollaboratorFailure`
        If the vault or broker fails.
    """
    organization = resolve_organization(event.organization_id)
    token = organization_token(organization)
    org_vault = resolve_vault(token, organization)
    signing_key = resolve_signing_key(token, organization, org_vault)
    if not signing_key.public_key or not signing_key.spec:
        raise VaultError(f'signing key {signing_key.key_id} has no public '
                         'key or spec')

    spec = get_application_config().get('EXCHANGE_KEY_SPEC', 'C25519')
    exchange_key = vault.create_key(
        token, org_vault.vault_id, spec, EXCHANGE_KEY_NAME,
        description=f'ekho - single-use c25519 key exchange with peer '
                    f'organization: {event.peer_organization_id}',
        ephemeral=True
    )
    if not exchange_key.public_key:
        raise VaultError(f'exchange key {exchange_key.key_id} has no public '
                         'key')
    try:
        raw_public_key = bytes.fromhex(exchange_key.public_key)
    except ValueError as e:
        raise VaultError('exchange public key is not hex-encoded') from e

    signature = vault.sign_message(token, org_vault.vault_id,
                                   signing_key.key_id, raw_public_key)
    logger.debug('Generated %i-byte signature using %s signing key',
                 len(signature) // 2, signing_key.spec)

    complete = events.KeyExchangeComplete(
        organization_id=event.organization_id,
        peer_organization_id=event.peer_organization_id,
        public_key=exchange_key.public_key,
        signature=signature,
        signing_key=signing_key.public_key,
        signing_spec=signing_key.spec
    )
    broker.publish(events.KEY_EXCHANGE_COMPLETE, events.encode(complete))
    logger.debug('Published %s message for peer organization id: %s',
                 events.KEY_EXCHANGE_COMPLETE, event.peer_organization_id)
    return complete


def complete_exchange(event: events.KeyExchangeComplete) \
        -> domain.SharedSecret:
    """
    Finish the exchange on behalf of the peer organization.

    The event was published by ``organization_id``; the local party is
    ``peer_organization_id``.

    Parameters
    ----------
    event : :class:`.KeyExchangeComplete`

    Returns
    -------
    :class:`domain.SharedSecret`

    Raises
    ------
    :class:`.MalformedEvent`
        If the public key or signature is not hex-encoded.
    :class:`.NotFound`
        If the local organization, vault or signing key cannot be resolved.
    :class:`.UnsupportedCapability`
        If the vault cannot derive shared secrets.
    """
    organization = resolve_organization(event.peer_organization_id)
    token = organization_token(organization)
    org_vault = resolve_vault(token, organization)
    signing_key = resolve_signing_key(token, organization, org_vault)

    peer_public_key = _unhex(event.public_key, 'public key')
    signature = _unhex(event.signature, 'signature')

    result = vault.derive_shared_secret(
        token, org_vault.vault_id, signing_key.key_id,
        peer_public_key=peer_public_key,
        peer_signing_key=event.signing_key,
        signature=signature,
        name=SHARED_SECRET_NAME,
        description=f'shared secret with organization: '
                    f'{event.organization_id}'
    )
    if isinstance(result, domain.Unsupported):
        raise UnsupportedCapability(
            f'failed to derive shared secret with organization '
            f'{event.organization_id}; {result.reason}'
        )
    logger.debug('Calculated %i-byte shared secret; organization id: %s',
                 len(result.secret), organization.organization_id)
    return result


def _unhex(value: str, what: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise MalformedEvent(f'failed to decode peer {what} as hex') from e
