"""Session and schema helpers for the datastore."""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.session import Session

from ...context import get_application_config
from ...exceptions import DatastoreError
from ... import logging
from .models import db

logger = logging.getLogger(__name__)


def init_app(app: Optional[object] = None) -> None:
    """Set configuration defaults and attach session to the application."""
    if app is None:
        return
    config = get_application_config(app)
    config.setdefault('SQLALCHEMY_DATABASE_URI', 'sqlite://')
    config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    db.init_app(app)


def close_session() -> None:
    """Discard the session bound to the current context."""
    db.session.remove()


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


@contextmanager
def transaction(commit: bool = True) -> Generator[Session, None, None]:
    """
    Provide the current session within a transactional scope.

    Parameters
    ----------
    commit : bool
        If False, the caller owns the transaction and nothing is committed
        here. Used to group several writes into one transaction, and for
        reads that may run inside an enclosing transaction.

    Raises
    ------
    :class:`.DatastoreError`
        When the database cannot be reached. Any other exception rolls back
        the transaction and propagates.
    """
    try:
        yield db.session
        if commit:
            db.session.commit()
    except OperationalError as e:
        logger.warning('Database operation failed; rolling back: %s', e)
        db.session.rollback()
        raise DatastoreError(f'Could not query database: {e}') from e
    except Exception:
        if commit:
            db.session.rollback()
        raise
