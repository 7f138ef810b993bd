"""Tests for :mod:`onboarding.services.datastore`."""

from datetime import datetime, timedelta
from unittest import TestCase

from pytz import UTC

from onboarding import domain, events
from onboarding.exceptions import DatastoreError
from onboarding.services import datastore

from .util import APP_ID, DatabaseMixin, ORG_ID, PEER_ID, \
    create_application, organization, store_token


class TestOrganizations(DatabaseMixin, TestCase):
    """Organizations are read back with their metadata."""

    def test_create_and_get(self) -> None:
        """A created organization can be loaded by id."""
        created = datastore.create_organization(
            organization(domain='acme.example')
        )
        self.assertEqual(created.organization_id, ORG_ID)
        loaded = datastore.get_organization(ORG_ID)
        self.assertEqual(loaded.name, 'Acme')
        self.assertEqual(loaded.metadata, {'domain': 'acme.example'})

    def test_generated_id(self) -> None:
        """An id is generated when none is given."""
        created = datastore.create_organization(
            domain.Organization('', 'Initech', {})
        )
        self.assertTrue(bool(created.organization_id))
        self.assertIsNotNone(
            datastore.get_organization(created.organization_id)
        )

    def test_get_missing(self) -> None:
        """None is returned for an unknown organization."""
        self.assertIsNone(datastore.get_organization(ORG_ID))

    def test_update_metadata(self) -> None:
        """The metadata document is replaced."""
        datastore.create_organization(organization(domain='acme.example'))
        datastore.update_organization_metadata(
            ORG_ID, {'domain': 'acme.example', 'address': '0xabc'}
        )
        self.assertEqual(datastore.get_organization(ORG_ID).metadata,
                         {'domain': 'acme.example', 'address': '0xabc'})

    def test_update_missing(self) -> None:
        """Updating an unknown organization is an error."""
        with self.assertRaises(datastore.NoSuchOrganization):
            datastore.update_organization_metadata(ORG_ID, {})


class TestApplications(DatabaseMixin, TestCase):
    """Applications and their organizations."""

    def setUp(self) -> None:
        """Create an application with two organizations."""
        super(TestApplications, self).setUp()
        create_application(
            domain.Application(APP_ID, 'Baseline', {'baselined': True})
        )
        datastore.create_organization(organization(ORG_ID, 'Acme'))
        datastore.create_organization(organization(PEER_ID, 'Globex'))
        datastore.add_application_organization(APP_ID, ORG_ID)
        datastore.add_application_organization(APP_ID, PEER_ID)

    def test_get_application(self) -> None:
        """The application's configuration is loaded."""
        application = datastore.get_application(APP_ID)
        self.assertTrue(application.baselined)
        self.assertIsNone(datastore.get_application(ORG_ID))

    def test_list_organizations(self) -> None:
        """Associated organizations are listed, optionally excluding one."""
        listed = datastore.list_application_organizations(APP_ID)
        self.assertEqual([o.name for o in listed], ['Acme', 'Globex'])
        listed = datastore.list_application_organizations(APP_ID,
                                                          exclude=ORG_ID)
        self.assertEqual([o.organization_id for o in listed], [PEER_ID])

    def test_duplicate_association(self) -> None:
        """An organization cannot be added twice."""
        with self.assertRaises(DatastoreError):
            datastore.add_application_organization(APP_ID, ORG_ID)

    def test_application_tokens(self) -> None:
        """Only unexpired tokens with the requested scope are returned."""
        now = datetime.now(tz=UTC)
        store_token(domain.ServiceToken(
            'expired', now - timedelta(hours=1), application_id=APP_ID,
            scope='offline_access'
        ))
        store_token(domain.ServiceToken(
            'other', now + timedelta(hours=1), application_id=APP_ID,
            scope='read'
        ))
        store_token(domain.ServiceToken(
            'good', now + timedelta(hours=1), application_id=APP_ID,
            scope='read offline_access'
        ))
        loaded = datastore.load_application_tokens(APP_ID,
                                                   scope='offline_access')
        self.assertEqual([t.token for t in loaded], ['good'])
        self.assertGreater(loaded[0].expires, now,
                           'Loaded expiry compares with an aware UTC time')
        self.assertEqual(len(datastore.load_application_tokens(APP_ID)), 2)


class TestOutbox(DatabaseMixin, TestCase):
    """Events wait in the outbox until they are published."""

    def test_enqueue(self) -> None:
        """Events are pending oldest first, with monotonic ids."""
        first = datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                        {'organization_id': ORG_ID})
        second = datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                         {'organization_id': PEER_ID})
        self.assertGreater(second, first)
        pending = datastore.load_pending_events()
        self.assertEqual([e.event_id for e in pending], [first, second])
        self.assertEqual(pending[0].payload, {'organization_id': ORG_ID})

    def test_timestamps_are_utc(self) -> None:
        """Stored times come back as aware UTC datetimes."""
        before = datetime.now(tz=UTC) - timedelta(seconds=1)
        datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                {'organization_id': ORG_ID})
        created = datastore.load_pending_events()[0].created
        self.assertIsNotNone(created.tzinfo)
        self.assertGreaterEqual(created, before)

    def test_mark_published(self) -> None:
        """A published event is no longer pending."""
        event_id = datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                           {'organization_id': ORG_ID})
        datastore.mark_published(event_id)
        self.assertEqual(datastore.load_pending_events(), [])

    def test_publish_failure(self) -> None:
        """A failed attempt is counted and the event stays pending."""
        event_id = datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                           {'organization_id': ORG_ID})
        datastore.record_publish_failure(event_id, 'broker down')
        pending = datastore.load_pending_events()
        self.assertEqual(len(pending), 1)
        self.assertEqual(pending[0].attempts, 1)

    def test_uncommitted(self) -> None:
        """An event enqueued in a rolled-back transaction is discarded."""
        with self.assertRaises(DatastoreError):
            with datastore.transaction():
                datastore.enqueue_event(events.ORGANIZATION_CREATED,
                                        {'organization_id': ORG_ID},
                                        commit=False)
                raise DatastoreError('something went wrong')
        self.assertEqual(datastore.load_pending_events(), [])
