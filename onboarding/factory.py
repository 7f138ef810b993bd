"""Application factories for the onboarding service."""

from celery import Celery
from flask import Flask

from . import config
from .registry import init_subscriptions
from .services import datastore, dedup, ledger, tokens, vault

celery_app = Celery('onboarding')
celery_app.config_from_object('onboarding.celeryconfig')


def create_app() -> Flask:
    """Initialize an application with all of its service integrations."""
    app = Flask('onboarding')
    app.config.from_object(config)

    datastore.init_app(app)
    tokens.init_app(app)
    vault.init_app(app)
    ledger.init_app(app)
    dedup.init_app(app)

    if app.config['CREATE_DB']:
        with app.app_context():
            datastore.create_all()
    return app


def create_worker_app() -> Flask:
    """Initialize an application and bind its subscriptions to Celery."""
    from . import tasks

    app = create_app()
    subscriptions = init_subscriptions(app.config)
    tasks.bind_subscriptions(celery_app, subscriptions)
    app.extensions['subscriptions'] = subscriptions
    return app
