"""
Client for the vault service: per-organization keystores.

Every call is authorized with an organization-scoped
:class:`domain.ServiceToken`.
"""

import json
from functools import wraps
from typing import Any, Dict, List, Optional

import requests

from .. import domain, logging
from ..context import get_application_config, get_application_global
from ..exceptions import VaultError

logger = logging.getLogger(__name__)

UNSUPPORTED_STATUSES = (404, 405, 501)
"""Responses indicating that the vault does not offer an operation."""


class VaultServiceSession(object):
    """An HTTP session with the vault service."""

    def __init__(self, endpoint: str,
                 supports_shared_secret: bool = False) -> None:
        """
        Create a new HTTP session.

        Parameters
        ----------
        endpoint : str
            Base URL of the vault API, e.g.
            ``https://vault.provide.services/api/v1``.
        supports_shared_secret : bool
            Whether the vault exposes shared secret derivation.
        """
        self.endpoint = endpoint.rstrip('/')
        self.supports_shared_secret = supports_shared_secret
        self._session = requests.Session()
        self._adapter = requests.adapters.HTTPAdapter(max_retries=2)
        self._session.mount('http://', self._adapter)
        self._session.mount('https://', self._adapter)
        logger.debug('New VaultServiceSession with endpoint = %s', endpoint)

    def _path(self, *parts: str) -> str:
        return '/'.join((self.endpoint,) + parts)

    def _request(self, method: str, path: str, token: domain.ServiceToken,
                 **kwargs: Any) -> Any:
        headers = {'Authorization': token.authorization}
        try:
            response = self._session.request(method, path, headers=headers,
                                             **kwargs)
        except requests.exceptions.RequestException as e:
            raise VaultError(f'Vault request failed: {e}') from e
        if not response.ok:
            raise VaultError(f'Vault responded to {method} {path} with '
                             f'status {response.status_code}')
        try:
            return response.json()
        except json.decoder.JSONDecodeError as e:
            raise VaultError('Could not read vault response') from e

    def create_vault(self, token: domain.ServiceToken, name: str,
                     description: str) -> domain.Vault:
        """
        Create a vault for the organization to which ``token`` is scoped.

        Parameters
        ----------
        token : :class:`domain.ServiceToken`
        name : str
        description : str

        Returns
        -------
        :class:`domain.Vault`

        Raises
        ------
        :class:`.VaultError`
        """
        data = self._request('POST', self._path('vaults'), token, json={
            'name': name,
            'description': description,
            'organization_id': token.organization_id,
        })
        return _to_vault(data)

    def list_vaults(self, token: domain.ServiceToken) -> List[domain.Vault]:
        """List the vaults of the organization to which ``token`` is scoped."""
        data = self._request('GET', self._path('vaults'), token)
        return [_to_vault(item) for item in data or []]

    def list_keys(self, token: domain.ServiceToken, vault_id: str,
                  spec: Optional[str] = None) -> List[domain.Key]:
        """
        List the keys in a vault.

        Parameters
        ----------
        token : :class:`domain.ServiceToken`
        vault_id : str
        spec : str
            If provided, only keys of this spec are returned.
        """
        params = {'spec': spec} if spec else {}
        data = self._request('GET', self._path('vaults', vault_id, 'keys'),
                             token, params=params)
        return [_to_key(item, vault_id) for item in data or []]

    def create_key(self, token: domain.ServiceToken, vault_id: str,
                   spec: str, name: str, description: str = '',
                   type: str = 'asymmetric', usage: str = 'sign/verify',
                   ephemeral: bool = False) -> domain.Key:
        """Generate a new key in a vault."""
        payload: Dict[str, Any] = {
            'type': type,
            'usage': usage,
            'spec': spec,
            'name': name,
            'description': description,
        }
        if ephemeral:
            payload['ephemeral'] = 'true'
        data = self._request('POST', self._path('vaults', vault_id, 'keys'),
                             token, json=payload)
        return _to_key(data, vault_id)

    def sign_message(self, token: domain.ServiceToken, vault_id: str,
                     key_id: str, message: bytes) -> str:
        """
        Sign a message with a key held in the vault.

        The vault signs the bytes of the JSON string it receives, so the raw
        message is sent as text. Byte sequences that are not valid UTF-8 are
        carried as U+FFFD, the same way the vault's own clients marshal them.

        Returns
        -------
        str
            The hex-encoded signature.
        """
        text = message.decode('utf-8', 'replace')
        data = self._request('POST',
                             self._path('vaults', vault_id, 'keys', key_id,
                                        'sign'),
                             token, json={'message': text})
        signature = (data or {}).get('signature')
        if not isinstance(signature, str):
            raise VaultError(f'Vault returned no signature for key {key_id}')
        return signature

    def derive_shared_secret(self, token: domain.ServiceToken, vault_id: str,
                             key_id: str, peer_public_key: bytes,
                             peer_signing_key: str, signature: bytes,
                             name: str, description: str = '') \
            -> domain.DerivationResult:
        """
        Derive a Diffie-Hellman shared secret with a peer.

        Returns
        -------
        :class:`domain.SharedSecret` or :class:`domain.Unsupported`
            :class:`domain.Unsupported` if the vault does not offer the
            derivation.

        Raises
        ------
        :class:`.VaultError`
            If the vault offers the derivation but it failed.
        """
        if not self.supports_shared_secret:
            return domain.Unsupported(
                'shared secret derivation is not exposed by the vault API'
            )
        path = self._path('vaults', vault_id, 'keys', key_id, 'derive')
        headers = {'Authorization': token.authorization}
        try:
            response = self._session.post(path, headers=headers, json={
                'peer_public_key': peer_public_key.hex(),
                'peer_signing_key': peer_signing_key,
                'signature': signature.hex(),
                'name': name,
                'description': description,
            })
        except requests.exceptions.RequestException as e:
            raise VaultError(f'Vault request failed: {e}') from e
        if response.status_code in UNSUPPORTED_STATUSES:
            return domain.Unsupported(
                f'vault responded with status {response.status_code}'
            )
        if not response.ok:
            raise VaultError(f'Vault responded to POST {path} with status '
                             f'{response.status_code}')
        try:
            data = response.json()
            return domain.SharedSecret(
                secret=bytes.fromhex(data['private_key']),
                key_id=data.get('id')
            )
        except (json.decoder.JSONDecodeError, KeyError, TypeError,
                ValueError) as e:
            raise VaultError('Could not read shared secret') from e


def _to_vault(data: Dict[str, Any]) -> domain.Vault:
    try:
        return domain.Vault(
            vault_id=data['id'],
            name=data.get('name') or '',
            organization_id=data.get('organization_id'),
            description=data.get('description')
        )
    except (KeyError, TypeError) as e:
        raise VaultError('Could not read vault') from e


def _to_key(data: Dict[str, Any], vault_id: str) -> domain.Key:
    try:
        return domain.Key(
            key_id=data['id'],
            vault_id=data.get('vault_id') or vault_id,
            spec=data.get('spec') or '',
            name=data.get('name'),
            type=data.get('type'),
            usage=data.get('usage'),
            address=data.get('address'),
            public_key=data.get('public_key'),
            ephemeral=str(data.get('ephemeral', '')).lower() == 'true'
        )
    except (KeyError, TypeError) as e:
        raise VaultError('Could not read key') from e


def init_app(app: object = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('VAULT_API_SCHEME', 'https')
    config.setdefault('VAULT_API_HOST', 'vault.provide.services')
    config.setdefault('VAULT_API_PATH', 'api/v1')
    config.setdefault('VAULT_SUPPORTS_SHARED_SECRET', '0')


def get_session(app: object = None) -> VaultServiceSession:
    """Create a new vault session from configuration."""
    config = get_application_config(app)
    scheme = config.get('VAULT_API_SCHEME', 'https')
    host = config.get('VAULT_API_HOST', 'vault.provide.services')
    path = config.get('VAULT_API_PATH', 'api/v1')
    supported = config.get('VAULT_SUPPORTS_SHARED_SECRET', False)
    if isinstance(supported, str):
        supported = supported == '1'
    return VaultServiceSession(f'{scheme}://{host}/{path}', bool(supported))


def current_session() -> VaultServiceSession:
    """Get/create :class:`.VaultServiceSession` for this context."""
    g = get_application_global()
    if not g:
        return get_session()
    if 'vault' not in g:
        g.vault = get_session()
    return g.vault  # type: ignore


@wraps(VaultServiceSession.create_vault)
def create_vault(token: domain.ServiceToken, name: str,
                 description: str) -> domain.Vault:
    """Create a vault for the organization to which ``token`` is scoped."""
    return current_session().create_vault(token, name, description)


@wraps(VaultServiceSession.list_vaults)
def list_vaults(token: domain.ServiceToken) -> List[domain.Vault]:
    """List the vaults of the organization to which ``token`` is scoped."""
    return current_session().list_vaults(token)


@wraps(VaultServiceSession.list_keys)
def list_keys(token: domain.ServiceToken, vault_id: str,
              spec: Optional[str] = None) -> List[domain.Key]:
    """List the keys in a vault."""
    return current_session().list_keys(token, vault_id, spec=spec)


@wraps(VaultServiceSession.create_key)
def create_key(token: domain.ServiceToken, vault_id: str, spec: str,
               name: str, description: str = '', type: str = 'asymmetric',
               usage: str = 'sign/verify',
               ephemeral: bool = False) -> domain.Key:
    """Generate a new key in a vault."""
    return current_session().create_key(token, vault_id, spec, name,
                                        description=description, type=type,
                                        usage=usage, ephemeral=ephemeral)


@wraps(VaultServiceSession.sign_message)
def sign_message(token: domain.ServiceToken, vault_id: str, key_id: str,
                 message: bytes) -> str:
    """Sign a message with a key held in the vault."""
    return current_session().sign_message(token, vault_id, key_id, message)


@wraps(VaultServiceSession.derive_shared_secret)
def derive_shared_secret(token: domain.ServiceToken, vault_id: str,
                         key_id: str, peer_public_key: bytes,
                         peer_signing_key: str, signature: bytes, name: str,
                         description: str = '') -> domain.DerivationResult:
    """Derive a Diffie-Hellman shared secret with a peer."""
    return current_session().derive_shared_secret(
        token, vault_id, key_id, peer_public_key, peer_signing_key,
        signature, name, description=description
    )
