"""State resolution shared by the protocol stages."""

from typing import List, Optional

from .. import domain, logging
from ..context import get_application_config
from ..exceptions import NotFound
from ..services import datastore, tokens, vault

logger = logging.getLogger(__name__)


def resolve_organization(organization_id: str) -> domain.Organization:
    """
    Load the current state of an organization.

    Raises
    ------
    :class:`.NotFound`
    """
    organization = datastore.get_organization(organization_id)
    if organization is None:
        raise NotFound(f'failed to resolve organization; organization id: '
                       f'{organization_id}')
    return organization


def organization_token(organization: domain.Organization) \
        -> domain.ServiceToken:
    """Mint a fresh token scoped to ``organization``."""
    return tokens.mint(organization_id=organization.organization_id)


def resolve_vault(token: domain.ServiceToken,
                  organization: domain.Organization) -> domain.Vault:
    """
    Get the organization's canonical vault.

    Only the first vault is used; organizations with several vaults are not
    supported.

    Raises
    ------
    :class:`.NotFound`
        If the organization has no vault.
    """
    vaults = vault.list_vaults(token)
    if not vaults:
        raise NotFound(f'failed to resolve vault; organization id: '
                       f'{organization.organization_id}; 0 associated vaults')
    if len(vaults) > 1:
        logger.debug('Organization %s has %i vaults; using %s',
                     organization.organization_id, len(vaults),
                     vaults[0].vault_id)
    return vaults[0]


def find_signing_key(keys: List[domain.Key],
                     name: Optional[str] = None) -> Optional[domain.Key]:
    """Find the exchange signing key by its conventional name."""
    if name is None:
        name = get_application_config().get('EXCHANGE_SIGNING_KEY_NAME',
                                            'ekho signing')
    for key in keys:
        if key.name is not None and key.name.lower() == name.lower():
            return key
    return None


def resolve_signing_key(token: domain.ServiceToken,
                        organization: domain.Organization,
                        org_vault: domain.Vault) -> domain.Key:
    """
    Get the exchange signing key from the organization's vault.

    Raises
    ------
    :class:`.NotFound`
        If the vault holds no exchange signing key.
    """
    signing_key = find_signing_key(vault.list_keys(token, org_vault.vault_id))
    if signing_key is None:
        raise NotFound(f'failed to resolve signing key; organization id: '
                       f'{organization.organization_id}')
    return signing_key
