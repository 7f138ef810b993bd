"""Flask configuration."""

import os

VERSION = '0.1.0'

SECRET_KEY = os.environ.get('SECRET_KEY', 'asdf1234')

LOGFILE = os.environ.get('LOGFILE')
LOGLEVEL = os.environ.get('LOGLEVEL', 20)

SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite://')
SQLALCHEMY_TRACK_MODIFICATIONS = False
CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', 0)))
"""Use the FakeRedis library instead of a redis service.

Useful for testing and local development."""

JWT_SECRET = os.environ.get('JWT_SECRET', 'foosecret')
JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
JWT_ISSUER = os.environ.get('JWT_ISSUER', 'https://ident.provide.services')
SERVICE_TOKEN_TTL = int(os.environ.get('SERVICE_TOKEN_TTL', '300'))
"""Lifetime (seconds) of tokens minted for a single protocol stage."""

VAULT_API_SCHEME = os.environ.get('VAULT_API_SCHEME', 'https')
VAULT_API_HOST = os.environ.get('VAULT_API_HOST', 'vault.provide.services')
VAULT_API_PATH = os.environ.get('VAULT_API_PATH', 'api/v1')
VAULT_SUPPORTS_SHARED_SECRET = \
    bool(int(os.environ.get('VAULT_SUPPORTS_SHARED_SECRET', 0)))
"""Whether the vault exposes Diffie-Hellman shared secret derivation."""

LEDGER_API_SCHEME = os.environ.get('LEDGER_API_SCHEME', 'https')
LEDGER_API_HOST = os.environ.get('LEDGER_API_HOST', 'nchain.provide.services')
LEDGER_API_PATH = os.environ.get('LEDGER_API_PATH', 'api/v1')

CONSUMER_CONCURRENCY = int(os.environ.get('CONSUMER_CONCURRENCY', '1'))
"""Default number of workers bound to each subject."""

ORGANIZATION_CREATED_ACK_WAIT = \
    int(os.environ.get('ORGANIZATION_CREATED_ACK_WAIT', '5'))
ORGANIZATION_CREATED_MAX_IN_FLIGHT = \
    int(os.environ.get('ORGANIZATION_CREATED_MAX_IN_FLIGHT', '2048'))
ORGANIZATION_CREATED_MAX_DELIVERIES = \
    int(os.environ.get('ORGANIZATION_CREATED_MAX_DELIVERIES', '10'))

KEY_EXCHANGE_INIT_ACK_WAIT = \
    int(os.environ.get('KEY_EXCHANGE_INIT_ACK_WAIT', '5'))
KEY_EXCHANGE_INIT_MAX_IN_FLIGHT = \
    int(os.environ.get('KEY_EXCHANGE_INIT_MAX_IN_FLIGHT', '2048'))
KEY_EXCHANGE_INIT_MAX_DELIVERIES = \
    int(os.environ.get('KEY_EXCHANGE_INIT_MAX_DELIVERIES', '10'))

KEY_EXCHANGE_COMPLETE_ACK_WAIT = \
    int(os.environ.get('KEY_EXCHANGE_COMPLETE_ACK_WAIT', '5'))
KEY_EXCHANGE_COMPLETE_MAX_IN_FLIGHT = \
    int(os.environ.get('KEY_EXCHANGE_COMPLETE_MAX_IN_FLIGHT', '2048'))
KEY_EXCHANGE_COMPLETE_MAX_DELIVERIES = \
    int(os.environ.get('KEY_EXCHANGE_COMPLETE_MAX_DELIVERIES', '10'))

ORGANIZATION_REGISTRATION_ACK_WAIT = \
    int(os.environ.get('ORGANIZATION_REGISTRATION_ACK_WAIT', '60'))
ORGANIZATION_REGISTRATION_MAX_IN_FLIGHT = \
    int(os.environ.get('ORGANIZATION_REGISTRATION_MAX_IN_FLIGHT', '2048'))
ORGANIZATION_REGISTRATION_MAX_DELIVERIES = \
    int(os.environ.get('ORGANIZATION_REGISTRATION_MAX_DELIVERIES', '10'))

REDELIVERY_DELAY = int(os.environ.get('REDELIVERY_DELAY', '5'))
"""Seconds before a negatively-acknowledged message is delivered again."""

DEDUP_ENABLED = bool(int(os.environ.get('DEDUP_ENABLED', 1)))
DEDUP_TTL = int(os.environ.get('DEDUP_TTL', str(60 * 60 * 24 * 7)))

RETRY_BROADCAST_FAILURES = \
    bool(int(os.environ.get('RETRY_BROADCAST_FAILURES', 0)))
"""
Redeliver registrations whose registry transaction failed to broadcast.

Off by default, which acknowledges the message despite the failure.
"""

EXCHANGE_SIGNING_KEY_NAME = os.environ.get('EXCHANGE_SIGNING_KEY_NAME',
                                           'ekho signing')
EXCHANGE_KEY_SPEC = os.environ.get('EXCHANGE_KEY_SPEC', 'C25519')
SIGNING_KEY_SPEC = os.environ.get('SIGNING_KEY_SPEC', 'secp256k1')
ZERO_KNOWLEDGE_KEY_SPEC = os.environ.get('ZERO_KNOWLEDGE_KEY_SPEC',
                                         'babyJubJub')
HD_WALLET_PURPOSE = int(os.environ.get('HD_WALLET_PURPOSE', '44'))

OUTBOX_BATCH_SIZE = int(os.environ.get('OUTBOX_BATCH_SIZE', '100'))
OUTBOX_POLL_INTERVAL = float(os.environ.get('OUTBOX_POLL_INTERVAL', '1.0'))
