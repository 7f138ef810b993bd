"""
Celery configuration module.

See `the celery docs
<http://docs.celeryproject.org/en/latest/userguide/configuration.html>`_.
"""

import os

REDIS_ENDPOINT = os.environ.get('REDIS_ENDPOINT', 'localhost:6379')
broker_url = "redis://%s/0" % REDIS_ENDPOINT
broker_transport_options = {
    # Unacknowledged messages are redelivered after this many seconds.
    'visibility_timeout': int(os.environ.get('BROKER_VISIBILITY_TIMEOUT',
                                             '60')),
}
task_ignore_result = True
task_serializer = 'json'
accept_content = ['json']
worker_prefetch_multiplier = 1
task_acks_late = True
task_reject_on_worker_lost = True
