"""
Idempotency markers for at-least-once delivery.

Before a stage performs side effects it claims the event's idempotency key for
the acknowledgment window; once the stage succeeds the key is marked complete.
A redelivered event whose key is complete is acknowledged without repeating
its side effects.
"""

from typing import Optional

import redis

from .. import logging
from ..context import get_application_config, get_application_global
from ..exceptions import CollaboratorFailure

logger = logging.getLogger(__name__)

CLAIM_PREFIX = 'onboarding:claim:'
DONE_PREFIX = 'onboarding:done:'


class DedupStoreError(CollaboratorFailure):
    """The idempotency store could not be reached."""


class DedupStore(object):
    """
    Manages idempotency markers in Redis.

    The StrictRedis instance is thread safe; connections are attached at the
    time a command is executed.
    """

    def __init__(self, host: str, port: int, db: int, ttl: int,
                 fake: bool = False) -> None:
        """Open the connection to Redis."""
        logger.debug('New Redis connection at %s, port %s', host, port)
        if fake:
            import fakeredis
            self.r = fakeredis.FakeStrictRedis()
        else:
            self.r = redis.StrictRedis(host=host, port=port, db=db)
        self._ttl = ttl

    def is_complete(self, key: str) -> bool:
        """Whether the event with this key has already been handled."""
        try:
            return bool(self.r.exists(DONE_PREFIX + key))
        except redis.exceptions.RedisError as e:
            raise DedupStoreError(f'Failed to check {key}: {e}') from e

    def claim(self, key: str, ttl: int) -> bool:
        """
        Claim an event for processing.

        Parameters
        ----------
        key : str
        ttl : int
            Seconds after which the claim lapses; normally the subject's
            acknowledgment window.

        Returns
        -------
        bool
            False if another worker holds the claim.
        """
        try:
            return bool(self.r.set(CLAIM_PREFIX + key, '1', nx=True,
                                   ex=max(int(ttl), 1)))
        except redis.exceptions.RedisError as e:
            raise DedupStoreError(f'Failed to claim {key}: {e}') from e

    def release(self, key: str) -> None:
        """Give up a claim so that a redelivery can be processed."""
        try:
            self.r.delete(CLAIM_PREFIX + key)
        except redis.exceptions.RedisError as e:
            raise DedupStoreError(f'Failed to release {key}: {e}') from e

    def complete(self, key: str) -> None:
        """Mark an event as handled."""
        try:
            pipe = self.r.pipeline()
            pipe.set(DONE_PREFIX + key, '1', ex=self._ttl)
            pipe.delete(CLAIM_PREFIX + key)
            pipe.execute()
        except redis.exceptions.RedisError as e:
            raise DedupStoreError(f'Failed to complete {key}: {e}') from e


def init_app(app: object = None) -> None:
    """Set default configuration parameters for an application instance."""
    config = get_application_config(app)
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '6379')
    config.setdefault('REDIS_DATABASE', '0')
    config.setdefault('DEDUP_TTL', str(60 * 60 * 24 * 7))


def _enabled(value: object) -> bool:
    if isinstance(value, str):
        return value == '1'
    return bool(value)


def get_store(app: object = None) -> Optional[DedupStore]:
    """
    Create a new :class:`DedupStore`, or None if deduplication is disabled.
    """
    config = get_application_config(app)
    if not _enabled(config.get('DEDUP_ENABLED', '1')):
        return None
    return DedupStore(
        host=config.get('REDIS_HOST', 'localhost'),
        port=int(config.get('REDIS_PORT', '6379')),
        db=int(config.get('REDIS_DATABASE', '0')),
        ttl=int(config.get('DEDUP_TTL', 60 * 60 * 24 * 7)),
        fake=_enabled(config.get('REDIS_FAKE', '0'))
    )


def current_store() -> Optional[DedupStore]:
    """Get/create the :class:`.DedupStore` for this context."""
    g = get_application_global()
    if not g:
        return get_store()
    if 'dedup' not in g:
        g.dedup = get_store()
    return g.dedup  # type: ignore
