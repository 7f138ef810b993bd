"""Core data structures for organization onboarding."""

from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Union


class Organization(NamedTuple):
    """An organization, as re-read from the datastore by each stage."""

    organization_id: str
    """Unique identifier (UUID) of the organization."""

    name: str
    """Display name."""

    metadata: Dict[str, Any]
    """
    Free-form metadata document.

    Well-known keys are ``address``, ``domain`` and ``messaging_endpoint``;
    anything else is preserved as-is.
    """

    user_id: Optional[str] = None
    """The user who owns the organization."""

    description: Optional[str] = None

    created: Optional[datetime] = None


class Application(NamedTuple):
    """An application to which organizations are attached."""

    application_id: str
    name: str
    config: Dict[str, Any]
    user_id: Optional[str] = None
    hidden: bool = False

    @property
    def baselined(self) -> bool:
        """Whether the application participates in organization onboarding."""
        return self.config.get('baselined') is True


class Vault(NamedTuple):
    """A per-organization keystore held by the vault service."""

    vault_id: str
    name: str
    organization_id: Optional[str] = None
    description: Optional[str] = None


class Key(NamedTuple):
    """A key held in a :class:`Vault`."""

    key_id: str
    vault_id: str
    spec: str
    """Key spec, e.g. ``secp256k1``, ``babyJubJub``, ``C25519``."""

    name: Optional[str] = None
    type: Optional[str] = None
    usage: Optional[str] = None
    address: Optional[str] = None
    """On-chain address derived from the key, if any."""

    public_key: Optional[str] = None
    """Hex-encoded public key, if any."""

    ephemeral: bool = False


class ServiceToken(NamedTuple):
    """
    A short-lived bearer credential scoped to one organization or application.

    Tokens are minted for a single protocol stage and never reused.
    """

    token: str
    expires: datetime
    organization_id: Optional[str] = None
    application_id: Optional[str] = None
    scope: Optional[str] = None

    @property
    def authorization(self) -> str:
        """Value for the ``Authorization`` header."""
        return f'Bearer {self.token}'


class Contract(NamedTuple):
    """A contract deployed on behalf of an application."""

    INTERFACE_REGISTRY = 'erc1820-registry'
    ORGANIZATION_REGISTRY = 'organization-registry'

    contract_id: str
    address: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None


class Wallet(NamedTuple):
    """An HD wallet provisioned for an organization."""

    wallet_id: str
    purpose: int = 44
    public_key: Optional[str] = None


class Transaction(NamedTuple):
    """The result of a contract execution."""

    transaction_id: Optional[str] = None
    reference: Optional[str] = None


class SharedSecret(NamedTuple):
    """A Diffie-Hellman shared secret derived by the vault."""

    secret: bytes
    key_id: Optional[str] = None


class Unsupported(NamedTuple):
    """The vault cannot perform the requested derivation."""

    reason: str


DerivationResult = Union[SharedSecret, Unsupported]


class OutboxEvent(NamedTuple):
    """An event persisted alongside the write that produced it."""

    event_id: int
    subject: str
    payload: Dict[str, Any]
    created: Optional[datetime] = None
    published: Optional[datetime] = None
    attempts: int = 0


def first_with(keys: List[Key], attribute: str) -> Optional[str]:
    """Get ``attribute`` from the first key, if it is set there."""
    if not keys:
        return None
    return getattr(keys[0], attribute)
