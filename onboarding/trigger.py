"""
Producers of onboarding events.

Both producers write their events to the outbox in the same transaction as the
change that causes them; :mod:`onboarding.relay` publishes them.
"""

from typing import Any, Dict, Iterable, List, Tuple

from . import domain, events, logging
from .services import datastore

logger = logging.getLogger(__name__)

Outgoing = Tuple[str, Dict[str, Any]]


def onboarding_events(application_id: str, organization_id: str,
                      peer_ids: Iterable[str]) -> List[Outgoing]:
    """
    Build the events that onboard an organization into an application.

    One registration event for the organization, plus a key exchange in each
    direction with every peer.

    Parameters
    ----------
    application_id : str
    organization_id : str
        The newly associated organization.
    peer_ids : iterable
        Organizations already associated with the application.

    Returns
    -------
    list
        ``(subject, payload)`` tuples.
    """
    outgoing: List[Outgoing] = [(
        events.ORGANIZATION_REGISTRATION,
        events.encode(events.OrganizationRegistration(
            organization_id=organization_id,
            application_id=application_id
        ))
    )]
    for peer_id in peer_ids:
        if peer_id == organization_id:
            continue
        for initiator, peer in ((organization_id, peer_id),
                                (peer_id, organization_id)):
            outgoing.append((
                events.KEY_EXCHANGE_INIT,
                events.encode(events.KeyExchangeInit(
                    organization_id=initiator,
                    peer_organization_id=peer
                ))
            ))
    return outgoing


def attach_organization(application_id: str, organization_id: str,
                        permissions: int = 0) -> List[int]:
    """
    Associate an organization with an application.

    If the application is baselined, the onboarding events are written to the
    outbox in the same transaction.

    Returns
    -------
    list
        Outbox ids of the events that were enqueued.

    Raises
    ------
    :class:`.NoSuchApplication`
    :class:`.DatastoreError`
    """
    application = datastore.get_application(application_id)
    if application is None:
        raise datastore.NoSuchApplication(f'No application {application_id}')

    event_ids: List[int] = []
    with datastore.transaction():
        peers = datastore.list_application_organizations(
            application_id, exclude=organization_id
        )
        datastore.add_application_organization(
            application_id, organization_id, permissions, commit=False
        )
        if application.baselined:
            for subject, payload in onboarding_events(
                    application_id, organization_id,
                    [peer.organization_id for peer in peers]):
                event_ids.append(
                    datastore.enqueue_event(subject, payload, commit=False)
                )
    if event_ids:
        logger.debug('Enqueued %i onboarding events for organization %s in '
                     'application %s', len(event_ids), organization_id,
                     application_id)
    return event_ids


def create_organization(organization: domain.Organization) \
        -> domain.Organization:
    """
    Persist a new organization and enqueue its vault provisioning.

    Returns
    -------
    :class:`domain.Organization`
        With its identifier populated.
    """
    with datastore.transaction():
        created = datastore.create_organization(organization, commit=False)
        datastore.enqueue_event(
            events.ORGANIZATION_CREATED,
            events.encode(events.OrganizationCreated(
                organization_id=created.organization_id
            )),
            commit=False
        )
    logger.debug('Created organization %s', created.organization_id)
    return created
