"""
Mints short-lived, scoped service tokens.

Each protocol stage mints its own tokens; the scope differs from one call to
the next (organization or application), so tokens are never cached.
"""

import uuid
from datetime import datetime, timedelta
from functools import wraps
from typing import Optional

import jwt
from pytz import UTC

from .. import domain, logging
from ..context import get_application_config, get_application_global
from ..exceptions import TokenIssuanceFailed

logger = logging.getLogger(__name__)

OFFLINE_ACCESS = 'offline_access'


class ServiceTokenIssuer(object):
    """Signs JWTs for calls to the vault and ledger services."""

    def __init__(self, secret: str, issuer: str, ttl: int = 300,
                 algorithm: str = 'HS256') -> None:
        """Configure the issuer with its signing secret."""
        self._secret = secret
        self._issuer = issuer
        self._ttl = ttl
        self._algorithm = algorithm

    def mint(self, organization_id: Optional[str] = None,
             application_id: Optional[str] = None,
             scope: Optional[str] = None) -> domain.ServiceToken:
        """
        Mint a token scoped to exactly one organization or application.

        Parameters
        ----------
        organization_id : str
        application_id : str
        scope : str
            Space-delimited grants, e.g. ``offline_access``.

        Returns
        -------
        :class:`domain.ServiceToken`

        Raises
        ------
        :class:`ValueError`
            If neither or both of ``organization_id`` and ``application_id``
            are given.
        :class:`.TokenIssuanceFailed`
            If the token cannot be signed.
        """
        if bool(organization_id) == bool(application_id):
            raise ValueError('A token is scoped to exactly one of an '
                             'organization or an application')
        issued = datetime.now(tz=UTC)
        expires = issued + timedelta(seconds=self._ttl)
        if organization_id:
            subject = f'organization:{organization_id}'
        else:
            subject = f'application:{application_id}'

        claims = {
            'iss': self._issuer,
            'sub': subject,
            'jti': str(uuid.uuid4()),
            'iat': int(issued.timestamp()),
            'exp': int(expires.timestamp()),
        }
        if organization_id:
            claims['organization_id'] = organization_id
        if application_id:
            claims['application_id'] = application_id
        if scope:
            claims['scope'] = scope

        try:
            encoded = jwt.encode(claims, self._secret,
                                 algorithm=self._algorithm)
        except (jwt.exceptions.PyJWTError, NotImplementedError,
                TypeError, ValueError) as e:
            raise TokenIssuanceFailed(f'Failed to vend token for {subject}: '
                                      f'{e}') from e
        if isinstance(encoded, bytes):
            encoded = encoded.decode('utf-8')
        logger.debug('Vended token %s for %s', claims['jti'], subject)
        return domain.ServiceToken(
            token=encoded,
            expires=expires,
            organization_id=organization_id,
            application_id=application_id,
            scope=scope
        )


def init_app(app: object = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('JWT_SECRET', 'foosecret')
    config.setdefault('JWT_ALGORITHM', 'HS256')
    config.setdefault('JWT_ISSUER', 'https://ident.provide.services')
    config.setdefault('SERVICE_TOKEN_TTL', '300')


def get_issuer(app: object = None) -> ServiceTokenIssuer:
    """Create a new :class:`ServiceTokenIssuer` from configuration."""
    config = get_application_config(app)
    return ServiceTokenIssuer(
        secret=config.get('JWT_SECRET', 'foosecret'),
        issuer=config.get('JWT_ISSUER', 'https://ident.provide.services'),
        ttl=int(config.get('SERVICE_TOKEN_TTL', 300)),
        algorithm=config.get('JWT_ALGORITHM', 'HS256')
    )


def current_issuer() -> ServiceTokenIssuer:
    """Get/create :class:`.ServiceTokenIssuer` for this context."""
    g = get_application_global()
    if not g:
        return get_issuer()
    if 'token_issuer' not in g:
        g.token_issuer = get_issuer()
    return g.token_issuer  # type: ignore


@wraps(ServiceTokenIssuer.mint)
def mint(organization_id: Optional[str] = None,
         application_id: Optional[str] = None,
         scope: Optional[str] = None) -> domain.ServiceToken:
    """Mint a scoped token with the issuer for this context."""
    return current_issuer().mint(organization_id=organization_id,
                                 application_id=application_id, scope=scope)
