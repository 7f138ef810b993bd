"""
Database integration for organizations, applications and the event outbox.

Only the reads and writes that the onboarding protocol depends on are provided
here; the CRUD surface of the identity service lives elsewhere.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pytz import UTC
from sqlalchemy.exc import IntegrityError

from . import util, models
from ... import domain
from ...exceptions import DatastoreError

init_app = util.init_app
create_all = util.create_all
drop_all = util.drop_all
close_session = util.close_session
transaction = util.transaction


class NoSuchOrganization(DatastoreError):
    """An organization was requested that does not exist."""


class NoSuchApplication(DatastoreError):
    """An application was requested that does not exist."""


def get_organization(organization_id: str) -> Optional[domain.Organization]:
    """
    Load an organization, bypassing any cached state.

    Parameters
    ----------
    organization_id : str

    Returns
    -------
    :class:`domain.Organization` or None
        None if there is no such organization.
    """
    with util.transaction(commit=False) as dbsession:
        db_org = dbsession.get(models.DBOrganization, organization_id)
        if db_org is None:
            return None
        dbsession.refresh(db_org)
        return _to_organization(db_org)


def create_organization(organization: domain.Organization,
                        commit: bool = True) -> domain.Organization:
    """
    Persist a new organization.

    Parameters
    ----------
    organization : :class:`domain.Organization`
        If ``organization_id`` is empty, a new id is generated.
    commit : bool
        Set to False to include the write in an enclosing transaction.

    Returns
    -------
    :class:`domain.Organization`
        With its identifier populated.
    """
    with util.transaction(commit) as dbsession:
        db_org = models.DBOrganization(
            name=organization.name,
            description=organization.description,
            user_id=organization.user_id,
            org_metadata=dict(organization.metadata or {})
        )
        if organization.organization_id:
            db_org.id = organization.organization_id
        dbsession.add(db_org)
        dbsession.flush()
        return _to_organization(db_org)


def update_organization_metadata(organization_id: str,
                                 metadata: Dict[str, Any]) -> None:
    """
    Replace the metadata document of an organization.

    No locking is applied; the last write wins.

    Raises
    ------
    :class:`NoSuchOrganization`
    """
    with util.transaction() as dbsession:
        db_org = dbsession.get(models.DBOrganization, organization_id)
        if db_org is None:
            raise NoSuchOrganization(f'No organization {organization_id}')
        db_org.org_metadata = dict(metadata)
        dbsession.add(db_org)


def get_application(application_id: str) -> Optional[domain.Application]:
    """Load an application, or None if there is no such application."""
    with util.transaction(commit=False) as dbsession:
        db_app = dbsession.get(models.DBApplication, application_id)
        if db_app is None:
            return None
        return _to_application(db_app)


def list_application_organizations(application_id: str,
                                   exclude: Optional[str] = None) \
        -> List[domain.Organization]:
    """
    Get the organizations associated with an application.

    Parameters
    ----------
    application_id : str
    exclude : str
        An organization id to leave out of the result.
    """
    with util.transaction(commit=False) as dbsession:
        query = dbsession.query(models.DBOrganization) \
            .join(models.DBApplicationOrganization) \
            .filter(models.DBApplicationOrganization.application_id
                    == application_id)
        if exclude is not None:
            query = query.filter(models.DBOrganization.id != exclude)
        return [_to_organization(db_org)
                for db_org in query.order_by(models.DBOrganization.name)]


def add_application_organization(application_id: str, organization_id: str,
                                 permissions: int = 0,
                                 commit: bool = True) -> None:
    """
    Associate an organization with an application.

    Raises
    ------
    :class:`DatastoreError`
        If the organization is already associated with the application.
    """
    with util.transaction(commit) as dbsession:
        existing = dbsession.get(models.DBApplicationOrganization,
                                 (application_id, organization_id))
        if existing is not None:
            raise DatastoreError(f'Organization {organization_id} is already '
                                 f'associated with application '
                                 f'{application_id}')
        dbsession.add(models.DBApplicationOrganization(
            application_id=application_id,
            organization_id=organization_id,
            permissions=permissions
        ))
        try:
            dbsession.flush()
        except IntegrityError as e:
            raise DatastoreError(f'Could not add organization '
                                 f'{organization_id} to application '
                                 f'{application_id}') from e


def load_application_tokens(application_id: str,
                            scope: Optional[str] = None) \
        -> List[domain.ServiceToken]:
    """
    Get unexpired tokens previously vended for an application.

    Parameters
    ----------
    application_id : str
    scope : str
        If provided, only tokens granting this scope are returned.
    """
    now = datetime.now(tz=UTC)
    with util.transaction(commit=False) as dbsession:
        query = dbsession.query(models.DBToken) \
            .filter(models.DBToken.application_id == application_id) \
            .filter((models.DBToken.expires == None)  # noqa: E711
                    | (models.DBToken.expires > now))
        tokens = []
        for db_token in query.order_by(models.DBToken.created):
            if scope is not None \
                    and scope not in (db_token.scope or '').split():
                continue
            tokens.append(domain.ServiceToken(
                token=db_token.token,
                expires=_utc(db_token.expires),
                application_id=db_token.application_id,
                organization_id=db_token.organization_id,
                scope=db_token.scope
            ))
        return tokens


def enqueue_event(subject: str, payload: Dict[str, Any],
                  commit: bool = True) -> int:
    """
    Add an event to the outbox.

    Returns
    -------
    int
        The id of the outbox row, which becomes the ``event_id``.
    """
    with util.transaction(commit) as dbsession:
        db_event = models.DBOutboxEvent(subject=subject, payload=payload)
        dbsession.add(db_event)
        dbsession.flush()
        return int(db_event.id)


def load_pending_events(limit: int = 100) -> List[domain.OutboxEvent]:
    """Get unpublished outbox events, oldest first."""
    with util.transaction(commit=False) as dbsession:
        query = dbsession.query(models.DBOutboxEvent) \
            .filter(models.DBOutboxEvent.published == None)  # noqa: E711
        return [_to_outbox_event(db_event) for db_event
                in query.order_by(models.DBOutboxEvent.id).limit(limit)]


def mark_published(event_id: int) -> None:
    """Record that an outbox event has been handed to the broker."""
    with util.transaction() as dbsession:
        db_event = dbsession.get(models.DBOutboxEvent, event_id)
        if db_event is None:
            raise DatastoreError(f'No outbox event {event_id}')
        db_event.published = datetime.now(tz=UTC)
        db_event.attempts += 1
        db_event.last_error = None
        dbsession.add(db_event)


def record_publish_failure(event_id: int, error: str) -> None:
    """Record a failed attempt to publish an outbox event."""
    with util.transaction() as dbsession:
        db_event = dbsession.get(models.DBOutboxEvent, event_id)
        if db_event is None:
            raise DatastoreError(f'No outbox event {event_id}')
        db_event.attempts += 1
        db_event.last_error = error
        dbsession.add(db_event)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Some backends (SQLite) drop the zone; stored times are always UTC."""
    if value is not None and value.tzinfo is None:
        return UTC.localize(value)
    return value

def _to_organization(db_org: models.DBOrganization) -> domain.Organization:
    return domain.Organization(
        organization_id=db_org.id,
        name=db_org.name,
        metadata=dict(db_org.org_metadata or {}),
        user_id=db_org.user_id,
        description=db_org.description,
        created=_utc(db_org.created)
    )


def _to_application(db_app: models.DBApplication) -> domain.Application:
    return domain.Application(
        application_id=db_app.id,
        name=db_app.name,
        config=dict(db_app.config or {}),
        user_id=db_app.user_id,
        hidden=bool(db_app.hidden)
    )


def _to_outbox_event(db_event: models.DBOutboxEvent) -> domain.OutboxEvent:
    return domain.OutboxEvent(
        event_id=db_event.id,
        subject=db_event.subject,
        payload=dict(db_event.payload or {}),
        created=_utc(db_event.created),
        published=_utc(db_event.published),
        attempts=db_event.attempts or 0
    )
