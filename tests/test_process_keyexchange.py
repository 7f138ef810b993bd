"""Tests for :mod:`onboarding.process.keyexchange`."""

import json
from unittest import TestCase, mock

from onboarding import domain, events
from onboarding.consumer import Delivery, dispatch
from onboarding.exceptions import MalformedEvent, NotFound, \
    UnsupportedCapability, VaultError
from onboarding.policy import Disposition
from onboarding.process import keyexchange
from onboarding.registry import get_subscription, init_subscriptions
from onboarding.services import broker, datastore, vault

from .util import ORG_ID, PEER_ID, organization

SIGNING_KEY = domain.Key('k1', 'v1', 'secp256k1', name='ekho signing',
                         public_key='02abcdef')
EXCHANGE_KEY = domain.Key('e1', 'v1', 'C25519', name='exchange',
                          public_key='a1b2c3d4', ephemeral=True)


class ExchangeTestCase(TestCase):
    """Stubs the datastore, vault and broker."""

    def setUp(self) -> None:
        """Patch the service sessions."""
        self.vault = mock.MagicMock()
        self.vault.list_vaults.return_value = [domain.Vault('v1', 'vault')]
        self.vault.list_keys.return_value = [
            domain.Key('k0', 'v1', 'babyJubJub', name='zk'),
            SIGNING_KEY
        ]
        self.vault.create_key.return_value = EXCHANGE_KEY
        self.vault.sign_message.return_value = 'deadbeef'
        self.broker = mock.MagicMock()

        def get_organization(organization_id):
            return organization(organization_id)

        patches = [
            mock.patch.object(vault, 'current_session',
                              return_value=self.vault),
            mock.patch.object(broker, 'current_session',
                              return_value=self.broker),
            mock.patch.object(datastore, 'get_organization',
                              side_effect=get_organization),
        ]
        for patch in patches:
            patch.start()
            self.addCleanup(patch.stop)


class TestInitiateExchange(ExchangeTestCase):
    """The initiator publishes a signed single-use public key."""

    def test_initiate(self) -> None:
        """An ephemeral key is created, signed and published for the peer."""
        complete = keyexchange.initiate_exchange(
            events.KeyExchangeInit(ORG_ID, PEER_ID)
        )

        kwargs = self.vault.create_key.call_args[1]
        self.assertTrue(kwargs['ephemeral'])
        self.assertIn(PEER_ID, kwargs['description'])
        self.assertEqual(self.vault.create_key.call_args[0][2], 'C25519')

        _, vault_id, key_id, message = self.vault.sign_message.call_args[0]
        self.assertEqual(key_id, SIGNING_KEY.key_id,
                         'The exchange key is signed with the signing key')
        self.assertEqual(message, bytes.fromhex(EXCHANGE_KEY.public_key),
                         'The raw key bytes are signed, not their hex text')

        subject, payload = self.broker.publish.call_args[0]
        self.assertEqual(subject, events.KEY_EXCHANGE_COMPLETE)
        self.assertEqual(payload, {
            'organization_id': ORG_ID,
            'peer_organization_id': PEER_ID,
            'public_key': 'a1b2c3d4',
            'signature': 'deadbeef',
            'signing_key': '02abcdef',
            'signing_spec': 'secp256k1',
        })
        self.assertEqual(complete.signature, 'deadbeef')

    def test_no_signing_key(self) -> None:
        """Nothing is published without an exchange signing key."""
        self.vault.list_keys.return_value = [
            domain.Key('k0', 'v1', 'babyJubJub', name='zk')
        ]
        with self.assertRaises(NotFound):
            keyexchange.initiate_exchange(
                events.KeyExchangeInit(ORG_ID, PEER_ID)
            )
        self.assertEqual(self.vault.create_key.call_count, 0)
        self.assertEqual(self.broker.publish.call_count, 0)

        subscription = get_subscription(events.KEY_EXCHANGE_INIT,
                                        init_subscriptions({}))
        delivery = Delivery(events.KEY_EXCHANGE_INIT, json.dumps({
            'organization_id': ORG_ID, 'peer_organization_id': PEER_ID
        }))
        self.assertEqual(dispatch(subscription, delivery), Disposition.NAK)
        self.assertEqual(self.broker.publish.call_count, 0)

    def test_no_vault(self) -> None:
        """An organization without a vault cannot initiate."""
        self.vault.list_vaults.return_value = []
        with self.assertRaises(NotFound):
            keyexchange.initiate_exchange(
                events.KeyExchangeInit(ORG_ID, PEER_ID)
            )

    def test_exchange_key_not_hex(self) -> None:
        """A public key the vault did not hex-encode is not published."""
        self.vault.create_key.return_value = EXCHANGE_KEY._replace(
            public_key='not hex'
        )
        with self.assertRaises(VaultError):
            keyexchange.initiate_exchange(
                events.KeyExchangeInit(ORG_ID, PEER_ID)
            )
        self.assertEqual(self.broker.publish.call_count, 0)


class TestCompleteExchange(ExchangeTestCase):
    """The peer derives the shared secret, where the vault allows it."""

    def event(self, **kwargs) -> events.KeyExchangeComplete:
        params = dict(organization_id=PEER_ID, peer_organization_id=ORG_ID,
                      public_key='a1b2c3d4', signature='deadbeef',
                      signing_key='02abcdef', signing_spec='secp256k1')
        params.update(kwargs)
        return events.KeyExchangeComplete(**params)

    def test_shared_secret(self) -> None:
        """The secret is derived with the local organization's vault."""
        self.vault.derive_shared_secret.return_value = \
            domain.SharedSecret(b'\x01\x02', 's1')
        secret = keyexchange.complete_exchange(self.event())
        self.assertEqual(secret.secret, b'\x01\x02')

        args = self.vault.derive_shared_secret.call_args[0]
        token, peer_public_key, signature = args[0], args[3], args[5]
        self.assertEqual(token.organization_id, ORG_ID,
                         'The consumer is the peer of the initiator')
        self.assertEqual(peer_public_key, bytes.fromhex('a1b2c3d4'))
        self.assertEqual(signature, bytes.fromhex('deadbeef'))

    def test_unsupported(self) -> None:
        """The message is redelivered when the vault cannot derive."""
        self.vault.derive_shared_secret.return_value = \
            domain.Unsupported('not exposed')
        with self.assertRaises(UnsupportedCapability):
            keyexchange.complete_exchange(self.event())

        subscription = get_subscription(events.KEY_EXCHANGE_COMPLETE,
                                        init_subscriptions({}))
        delivery = Delivery(events.KEY_EXCHANGE_COMPLETE,
                            json.dumps(events.encode(self.event())))
        self.assertEqual(dispatch(subscription, delivery), Disposition.NAK)

    def test_bad_hex(self) -> None:
        """A public key that is not hex is malformed."""
        with self.assertRaises(MalformedEvent):
            keyexchange.complete_exchange(self.event(public_key='xyz'))
        self.assertEqual(self.vault.derive_shared_secret.call_count, 0)
