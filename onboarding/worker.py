"""
Entry points for the onboarding workers.

``onboarding-worker consume`` starts one Celery worker per subject, each bound
to that subject's queue with a fixed pool; ``onboarding-worker relay`` runs
the outbox relay.
"""

import multiprocessing
from typing import List, Optional

import click

from . import logging, relay
from .factory import celery_app, create_worker_app
from .registry import Subscription, get_subscription
from .services import datastore

logger = logging.getLogger(__name__)


def worker_argv(subscription: Subscription) -> List[str]:
    """Build the Celery worker arguments for a subscription."""
    return [
        'worker',
        '--queues', subscription.subject,
        '--concurrency', str(subscription.policy.pool_size),
        '--prefetch-multiplier', '1',
        '--hostname', f'{subscription.subject}@%h',
        '--loglevel', 'INFO',
    ]


def run_worker(subject: str) -> None:
    """Run the Celery worker for a single subject in this process."""
    app = create_worker_app()
    subscription = get_subscription(subject, app.extensions['subscriptions'])
    with app.app_context():
        logger.info('Starting %i workers for subject: %s',
                    subscription.policy.pool_size, subject)
        celery_app.worker_main(argv=worker_argv(subscription))


@click.group()
def main() -> None:
    """Run the organization onboarding service."""


@main.command()
@click.option('--subject', default=None,
              help='Consume only this subject; all subjects by default.')
def consume(subject: Optional[str]) -> None:
    """Start a worker pool for each onboarding subject."""
    if subject is not None:
        run_worker(subject)
        return

    app = create_worker_app()
    processes = [
        multiprocessing.Process(target=run_worker,
                                args=(subscription.subject,),
                                name=subscription.subject)
        for subscription in app.extensions['subscriptions']
    ]
    for process in processes:
        process.start()
    for process in processes:
        process.join()


@main.command('relay')
@click.option('--interval', type=float, default=None,
              help='Seconds to wait when the outbox is empty.')
def run_relay(interval: Optional[float]) -> None:
    """Publish pending outbox events."""
    app = create_worker_app()
    with app.app_context():
        logger.info('Starting outbox relay')
        relay.run(interval)


@main.command('init-db')
def init_db() -> None:
    """Create the database tables."""
    app = create_worker_app()
    with app.app_context():
        datastore.create_all()


if __name__ == '__main__':
    main()
