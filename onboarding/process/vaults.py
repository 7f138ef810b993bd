"""Provisions the default vault of a newly created organization."""

from .. import domain, logging
from ..events import OrganizationCreated
from ..services import vault
from .common import organization_token, resolve_organization

logger = logging.getLogger(__name__)

DESCRIPTION = 'default organizational keystore'


def provision_vault(event: OrganizationCreated) -> domain.Vault:
    """
    Create a default vault for the organization.

    No check is made for an existing vault: a repeated delivery creates
    another one unless the worker boundary deduplicates the event.

    Parameters
    ----------
    event : :class:`.OrganizationCreated`

    Returns
    -------
    :class:`domain.Vault`

    Raises
    ------
    :class:`.NotFound`
        If the organization does not exist.
    :class:`.CollaboratorFailure`
        If a token cannot be minted or the vault cannot be created.
    """
    organization = resolve_organization(event.organization_id)
    token = organization_token(organization)
    created = vault.create_vault(token, f'{organization.name} vault',
                                 DESCRIPTION)
    logger.debug('Created default vault for organization: %s; vault id: %s',
                 organization.name, created.vault_id)
    return created
