"""Client for the ledger service: contracts, HD wallets and transactions."""

import json
from functools import wraps
from typing import Any, Dict, List

import requests

from .. import domain, logging
from ..context import get_application_config, get_application_global
from ..exceptions import BroadcastFailed, LedgerError

logger = logging.getLogger(__name__)


class LedgerServiceSession(object):
    """An HTTP session with the ledger service."""

    def __init__(self, endpoint: str) -> None:
        """Create a new HTTP session."""
        self.endpoint = endpoint.rstrip('/')
        self._session = requests.Session()
        self._adapter = requests.adapters.HTTPAdapter(max_retries=2)
        self._session.mount('http://', self._adapter)
        self._session.mount('https://', self._adapter)
        logger.debug('New LedgerServiceSession with endpoint = %s', endpoint)

    def _path(self, *parts: str) -> str:
        return '/'.join((self.endpoint,) + parts)

    def _request(self, method: str, path: str, token: domain.ServiceToken,
                 **kwargs: Any) -> Any:
        headers = {'Authorization': token.authorization}
        try:
            response = self._session.request(method, path, headers=headers,
                                             **kwargs)
        except requests.exceptions.RequestException as e:
            raise LedgerError(f'Ledger request failed: {e}') from e
        if not response.ok:
            raise LedgerError(f'Ledger responded to {method} {path} with '
                              f'status {response.status_code}')
        try:
            return response.json()
        except json.decoder.JSONDecodeError as e:
            raise LedgerError('Could not read ledger response') from e

    def list_contracts(self, token: domain.ServiceToken) \
            -> List[domain.Contract]:
        """
        List the contracts deployed for the application.

        The listing may omit the contract type; use
        :meth:`get_contract_details` to resolve it.
        """
        data = self._request('GET', self._path('contracts'), token)
        return [_to_contract(item) for item in data or []]

    def get_contract_details(self, token: domain.ServiceToken,
                             contract_id: str) -> domain.Contract:
        """Get a contract, including its declared type and address."""
        data = self._request('GET', self._path('contracts', contract_id),
                             token)
        return _to_contract(data)

    def create_wallet(self, token: domain.ServiceToken,
                      purpose: int = 44) -> domain.Wallet:
        """
        Provision an HD wallet for the organization ``token`` is scoped to.

        Parameters
        ----------
        token : :class:`domain.ServiceToken`
        purpose : int
            BIP-43 purpose of the wallet.
        """
        data = self._request('POST', self._path('wallets'), token,
                             json={'purpose': purpose})
        try:
            return domain.Wallet(wallet_id=data['id'],
                                 purpose=data.get('purpose', purpose),
                                 public_key=data.get('public_key'))
        except (KeyError, TypeError) as e:
            raise LedgerError('Could not read wallet') from e

    def execute_contract(self, token: domain.ServiceToken, contract_id: str,
                         method: str, params: List[Any], wallet_id: str,
                         value: int = 0) -> domain.Transaction:
        """
        Execute a contract method, broadcasting a signed transaction.

        Raises
        ------
        :class:`.BroadcastFailed`
            If the ledger did not accept the transaction.
        """
        try:
            data = self._request(
                'POST', self._path('contracts', contract_id, 'execute'),
                token, json={
                    'wallet_id': wallet_id,
                    'method': method,
                    'params': params,
                    'value': value,
                }
            )
        except LedgerError as e:
            raise BroadcastFailed(f'{method} on contract {contract_id} '
                                  f'failed: {e}') from e
        data = data or {}
        return domain.Transaction(transaction_id=data.get('id'),
                                  reference=data.get('ref'))


def _to_contract(data: Dict[str, Any]) -> domain.Contract:
    try:
        return domain.Contract(
            contract_id=data['id'],
            address=data.get('address'),
            type=data.get('type'),
            name=data.get('name')
        )
    except (KeyError, TypeError) as e:
        raise LedgerError('Could not read contract') from e


def init_app(app: object = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('LEDGER_API_SCHEME', 'https')
    config.setdefault('LEDGER_API_HOST', 'nchain.provide.services')
    config.setdefault('LEDGER_API_PATH', 'api/v1')


def get_session(app: object = None) -> LedgerServiceSession:
    """Create a new ledger session from configuration."""
    config = get_application_config(app)
    scheme = config.get('LEDGER_API_SCHEME', 'https')
    host = config.get('LEDGER_API_HOST', 'nchain.provide.services')
    path = config.get('LEDGER_API_PATH', 'api/v1')
    return LedgerServiceSession(f'{scheme}://{host}/{path}')


def current_session() -> LedgerServiceSession:
    """Get/create :class:`.LedgerServiceSession` for this context."""
    g = get_application_global()
    if not g:
        return get_session()
    if 'ledger' not in g:
        g.ledger = get_session()
    return g.ledger  # type: ignore


@wraps(LedgerServiceSession.list_contracts)
def list_contracts(token: domain.ServiceToken) -> List[domain.Contract]:
    """List the contracts deployed for the application."""
    return current_session().list_contracts(token)


@wraps(LedgerServiceSession.get_contract_details)
def get_contract_details(token: domain.ServiceToken,
                         contract_id: str) -> domain.Contract:
    """Get a contract, including its declared type and address."""
    return current_session().get_contract_details(token, contract_id)


@wraps(LedgerServiceSession.create_wallet)
def create_wallet(token: domain.ServiceToken,
                  purpose: int = 44) -> domain.Wallet:
    """Provision an HD wallet."""
    return current_session().create_wallet(token, purpose=purpose)


@wraps(LedgerServiceSession.execute_contract)
def execute_contract(token: domain.ServiceToken, contract_id: str,
                     method: str, params: List[Any], wallet_id: str,
                     value: int = 0) -> domain.Transaction:
    """Execute a contract method."""
    return current_session().execute_contract(token, contract_id, method,
                                              params, wallet_id=wallet_id,
                                              value=value)
