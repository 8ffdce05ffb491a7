"""Configuration for the share server, Redis and Celery."""

from .settings import QuickshareConfig

__all__ = ["QuickshareConfig"]
