"""
Celery Configuration

Celery only runs the periodic Reaper pass, for deployments whose web
processes share a Redis registry. The broker defaults to the same Redis
server the registry uses.
"""

import os
from datetime import timedelta

from celery import Celery
from kombu import Queue

from .redis_config import RedisConfig
from .settings import QuickshareConfig

REAP_TASK_NAME = "quickshare.tasks.reap_expired_shares"
REAPER_QUEUE = "reaper_queue"


class CeleryConfig:
    """
    Celery settings derived from the share server configuration.

    Passed to ``Celery.config_from_object``; every public attribute is a
    Celery setting.
    """

    task_serializer = "json"
    accept_content = ["json"]
    result_serializer = "json"
    timezone = "UTC"
    enable_utc = True

    # One pass at a time; a late ack re-runs a pass cut short by a crash
    worker_prefetch_multiplier = 1
    task_acks_late = True

    task_default_queue = "default"
    task_queues = (
        Queue("default", routing_key="default"),
        Queue(REAPER_QUEUE, routing_key="reaper"),
    )
    task_routes = {REAP_TASK_NAME: {"queue": REAPER_QUEUE}}

    result_expires = 3600

    def __init__(self, config: QuickshareConfig):
        self.broker_url = os.getenv("CELERY_BROKER_URL") or RedisConfig().connection_url()
        self.result_backend = os.getenv("CELERY_RESULT_BACKEND") or self.broker_url

        interval = config.reaper_interval_seconds
        self.beat_schedule = {
            "reap-expired-shares": {
                "task": REAP_TASK_NAME,
                "schedule": timedelta(seconds=interval),
                # A pass still queued when the next one is due is redundant
                "options": {"expires": interval},
            },
        }

        # A pass that outlives its own interval is stuck on storage
        self.task_soft_time_limit = int(
            os.getenv("CELERY_TASK_SOFT_TIME_LIMIT", max(interval * 4, 240))
        )
        self.task_time_limit = int(
            os.getenv("CELERY_TASK_TIME_LIMIT", self.task_soft_time_limit + 60)
        )
        self.worker_concurrency = int(os.getenv("CELERY_WORKER_CONCURRENCY", 1))


def make_celery(app) -> Celery:
    """
    Create a Celery instance whose tasks run inside the Flask app context.

    Creating the instance does not contact the broker.

    Args:
        app: Flask application built by create_app()
    """
    settings = CeleryConfig(app.quickshare_config)
    celery = Celery(app.import_name)
    celery.config_from_object(settings)

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
