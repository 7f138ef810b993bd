"""Helpers shared by the onboarding tests."""

from datetime import datetime
from typing import Any

from flask import Flask
from pytz import UTC

from onboarding import domain
from onboarding.factory import create_app
from onboarding.services import datastore
from onboarding.services.datastore import models

ORG_ID = '8e1b2a3c-1111-4a5b-9c0d-1e2f3a4b5c6d'
PEER_ID = '0f9e8d7c-2222-4b6a-8d9c-0e1f2a3b4c5d'
APP_ID = 'c8a5e5f0-3333-4c7b-9e8f-1a2b3c4d5e6f'


def make_app(**config: Any) -> Flask:
    """Create an application backed by an in-memory SQLite database."""
    app = create_app()
    app.config['REDIS_FAKE'] = True
    app.config.update(config)
    return app


class DatabaseMixin(object):
    """Sets up an application context with a fresh schema for each test."""

    def setUp(self) -> None:
        """Create the schema."""
        self.app = make_app()
        self.context = self.app.app_context()
        self.context.push()
        datastore.create_all()

    def tearDown(self) -> None:
        """Drop the schema."""
        datastore.close_session()
        datastore.drop_all()
        self.context.pop()


def organization(organization_id: str = ORG_ID, name: str = 'Acme',
                 **metadata: Any) -> domain.Organization:
    """Build an organization."""
    return domain.Organization(organization_id=organization_id, name=name,
                               metadata=metadata, created=datetime.now(tz=UTC))


def service_token(**kwargs: Any) -> domain.ServiceToken:
    """Build a token without signing anything."""
    kwargs.setdefault('organization_id', ORG_ID)
    return domain.ServiceToken(token='footoken', expires=datetime.now(),
                               **kwargs)


def create_application(application: domain.Application) -> None:
    """Persist an application; the onboarding service only ever reads them."""
    with datastore.transaction() as dbsession:
        db_app = models.DBApplication(
            id=application.application_id,
            name=application.name,
            user_id=application.user_id,
            config=dict(application.config or {}),
            hidden=application.hidden
        )
        dbsession.add(db_app)


def store_token(token: domain.ServiceToken) -> None:
    """Persist a token as the identity service would when vending it."""
    with datastore.transaction() as dbsession:
        dbsession.add(models.DBToken(
            application_id=token.application_id,
            organization_id=token.organization_id,
            scope=token.scope,
            token=token.token,
            expires=token.expires
        ))
