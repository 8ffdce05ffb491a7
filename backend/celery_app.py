"""
Celery Application Instance

Creates the Celery app instance for use by workers and the beat scheduler.
Uses the app factory so tasks resolve the same services as the web app.
Run it against a Redis registry (REGISTRY_BACKEND=redis); an in-memory
registry is private to each process.
"""

from app_factory import create_app
from quickshare.config import QuickshareConfig


def worker_config() -> QuickshareConfig:
    """Web config minus the in-process reaper thread; beat schedules passes here."""
    config = QuickshareConfig()
    config.reaper_enabled = False
    return config


flask_app = create_app(worker_config())

celery_app = flask_app.celery

# Task modules are imported by name when the worker starts, after
# `celery_app` exists, to avoid a circular import at module load.
celery_app.conf.imports = ("quickshare.tasks.reaper_task",)
