"""Registers an organization on the application's on-chain registry."""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .. import domain, logging
from ..context import get_application_config
from ..events import OrganizationRegistration
from ..exceptions import PreconditionUnmet
from ..services import datastore, ledger, tokens, vault
from .common import organization_token, resolve_organization

logger = logging.getLogger(__name__)

REGISTER_METHOD = 'registerOrg'
UPDATE_METHOD = 'updateOrg'


class RegistryAttributes(NamedTuple):
    """What the organization registry records about an organization."""

    address: Optional[str]
    domain: Optional[str]
    messaging_endpoint: Optional[str]
    zero_knowledge_public_key: Optional[str]

    REQUIRED = (
        ('address', 'organization public address'),
        ('domain', 'organization domain'),
        ('messaging_endpoint', 'organization messaging endpoint'),
        ('zero_knowledge_public_key',
         'organization zero-knowledge public key'),
    )

    def require(self) -> None:
        """
        Ensure that every attribute is resolvable.

        Raises
        ------
        :class:`.PreconditionUnmet`
            Naming the first missing attribute.
        """
        for field, label in self.REQUIRED:
            if not getattr(self, field):
                raise PreconditionUnmet(
                    field, f'failed to resolve {label} for storage in the '
                           'public org registry'
                )


def resolve_key_attributes(token: domain.ServiceToken,
                           organization: domain.Organization) \
        -> Tuple[Optional[str], Optional[str]]:
    """
    Get the on-chain address and zero-knowledge public key from the vault.

    Returns
    -------
    tuple
        The address of the first signing-curve key and the public key of the
        first zero-knowledge-curve key; either may be None. Both are None if
        the organization has no vault yet.
    """
    config = get_application_config()
    vaults = vault.list_vaults(token)
    if not vaults:
        return None, None
    vault_id = vaults[0].vault_id
    signing_keys = vault.list_keys(
        token, vault_id, spec=config.get('SIGNING_KEY_SPEC', 'secp256k1')
    )
    zk_keys = vault.list_keys(
        token, vault_id,
        spec=config.get('ZERO_KNOWLEDGE_KEY_SPEC', 'babyJubJub')
    )
    return (domain.first_with(signing_keys, 'address'),
            domain.first_with(zk_keys, 'public_key'))


def application_token(application_id: str) -> domain.ServiceToken:
    """Get an offline-access token for the application, minting if needed."""
    existing = datastore.load_application_tokens(application_id,
                                                 scope=tokens.OFFLINE_ACCESS)
    if existing:
        return existing[0]
    return tokens.mint(application_id=application_id,
                       scope=tokens.OFFLINE_ACCESS)


def resolve_registries(token: domain.ServiceToken, application_id: str) \
        -> Tuple[domain.Contract, domain.Contract]:
    """
    Find the interface-implementer and organization registry contracts.

    Returns
    -------
    tuple
        The interface-implementer registry and the organization registry.

    Raises
    ------
    :class:`.PreconditionUnmet`
        If either registry is not deployed for the application.
    """
    registries: Dict[str, domain.Contract] = {}
    for contract in ledger.list_contracts(token):
        details = ledger.get_contract_details(token, contract.contract_id)
        if details.type in (domain.Contract.INTERFACE_REGISTRY,
                            domain.Contract.ORGANIZATION_REGISTRY):
            registries[details.type] = details

    interface_registry = registries.get(domain.Contract.INTERFACE_REGISTRY)
    if interface_registry is None or not interface_registry.address:
        raise PreconditionUnmet(
            'interface_registry',
            f'failed to resolve ERC1820 registry contract; application id: '
            f'{application_id}'
        )
    org_registry = registries.get(domain.Contract.ORGANIZATION_REGISTRY)
    if org_registry is None or not org_registry.address:
        raise PreconditionUnmet(
            'organization_registry',
            f'failed to resolve organization registry contract; application '
            f'id: {application_id}'
        )
    return interface_registry, org_registry


def register_organization(event: OrganizationRegistration) \
        -> domain.Transaction:
    """
    Register or update the organization in the organization registry.

    Any failure aborts the remaining steps. A transaction that fails to
    broadcast raises :class:`.BroadcastFailed`, and the organization's
    metadata is left untouched.

    Parameters
    ----------
    event : :class:`.OrganizationRegistration`

    Returns
    -------
    :class:`domain.Transaction`

    Raises
    ------
    :class:`.NotFound`
    :class:`.PreconditionUnmet`
    :class:`.CollaboratorFailure`
    :class:`.BroadcastFailed`
    """
    organization = resolve_organization(event.organization_id)
    address, zk_public_key = resolve_key_attributes(
        organization_token(organization), organization
    )

    metadata = dict(organization.metadata)
    update_metadata = False
    if not isinstance(metadata.get('address'), str):
        metadata['address'] = address
        update_metadata = True
    messaging_endpoint = _string_or_none(metadata.get('messaging_endpoint'))
    org_domain = _string_or_none(metadata.get('domain'))

    attributes = RegistryAttributes(
        address=address,
        domain=org_domain,
        messaging_endpoint=messaging_endpoint,
        zero_knowledge_public_key=zk_public_key
    )
    attributes.require()

    app_token = application_token(event.application_id)
    _, org_registry = resolve_registries(app_token, event.application_id)

    wallet = ledger.create_wallet(
        organization_token(organization),
        purpose=int(get_application_config().get('HD_WALLET_PURPOSE', 44))
    )
    logger.debug('Created HD wallet %s for organization %s',
                 wallet.wallet_id, organization.organization_id)

    method = UPDATE_METHOD if event.update_registry else REGISTER_METHOD
    logger.debug('Attempting %s for organization %s with registry '
                 'contract: %s', method, organization.organization_id,
                 org_registry.address)
    transaction = ledger.execute_contract(
        app_token, org_registry.contract_id, method,
        registry_params(organization, attributes),
        wallet_id=wallet.wallet_id, value=0
    )

    if update_metadata:
        datastore.update_organization_metadata(organization.organization_id,
                                               metadata)
    logger.info('Broadcast %s transaction on behalf of organization: %s',
                method, organization.organization_id)
    return transaction


def registry_params(organization: domain.Organization,
                    attributes: RegistryAttributes) -> List[Any]:
    """Arguments to ``registerOrg`` / ``updateOrg``."""
    return [
        attributes.address,
        organization.name,
        attributes.domain,
        attributes.messaging_endpoint,
        attributes.zero_knowledge_public_key,
        '{}',
    ]


def _string_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None
