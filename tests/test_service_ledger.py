"""Tests for :mod:`onboarding.services.ledger`."""

import json
from unittest import TestCase, mock

from onboarding import domain
from onboarding.exceptions import BroadcastFailed, LedgerError
from onboarding.services import ledger

from .util import APP_ID, service_token


def response(status_code: int = 200, data=None) -> mock.MagicMock:
    return mock.MagicMock(status_code=status_code, ok=status_code < 400,
                          json=mock.MagicMock(return_value=data))


class TestLedgerServiceSession(TestCase):
    """The ledger session speaks JSON over HTTP."""

    def setUp(self) -> None:
        """Create a session with a mock transport."""
        self.session = ledger.LedgerServiceSession('https://ledger.test/api')
        self.session._session = mock.MagicMock()
        self.token = service_token(organization_id=None,
                                   application_id=APP_ID)

    def test_contracts(self) -> None:
        """Contract details carry the declared type."""
        self.session._session.request.return_value = response(200, {
            'id': 'c1', 'address': '0x0rg', 'type': 'organization-registry'
        })
        contract = self.session.get_contract_details(self.token, 'c1')
        self.assertEqual(contract.type, domain.Contract.ORGANIZATION_REGISTRY)
        self.assertEqual(self.session._session.request.call_args[0][1],
                         'https://ledger.test/api/contracts/c1')

    def test_create_wallet(self) -> None:
        """An HD wallet is requested with its purpose."""
        self.session._session.request.return_value = response(201, {
            'id': 'w1', 'purpose': 44
        })
        wallet = self.session.create_wallet(self.token)
        self.assertEqual(wallet, domain.Wallet('w1', 44))
        self.assertEqual(self.session._session.request.call_args[1]['json'],
                         {'purpose': 44})

    def test_execute_contract(self) -> None:
        """A contract method is executed with a zero value."""
        self.session._session.request.return_value = response(202, {
            'id': 'tx1', 'ref': 'r1'
        })
        transaction = self.session.execute_contract(
            self.token, 'c2', 'registerOrg', ['0xabc'], wallet_id='w1'
        )
        self.assertEqual(transaction, domain.Transaction('tx1', 'r1'))
        self.assertEqual(self.session._session.request.call_args[1]['json'],
                         {'wallet_id': 'w1', 'method': 'registerOrg',
                          'params': ['0xabc'], 'value': 0})

    def test_execute_contract_failed(self) -> None:
        """A rejected execution is a broadcast failure."""
        self.session._session.request.return_value = response(422)
        with self.assertRaises(BroadcastFailed):
            self.session.execute_contract(self.token, 'c2', 'registerOrg',
                                          [], wallet_id='w1')

    def test_unreadable(self) -> None:
        """A response that is not JSON is a ledger error."""
        resp = response(200)
        resp.json.side_effect = json.decoder.JSONDecodeError('bad', '<', 0)
        self.session._session.request.return_value = resp
        with self.assertRaises(LedgerError):
            self.session.list_contracts(self.token)
