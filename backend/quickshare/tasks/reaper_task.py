"""
Reaper Task

Celery beat task running the Reaper for deployments whose web processes
share a Redis registry. Thin wrapper that delegates to ShareService.
"""

import logging

from celery_app import celery_app
from quickshare.domain.errors import DomainError

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="quickshare.tasks.reap_expired_shares")
def reap_expired_shares(self):
    """
    Periodic task deleting expired and exhausted shares and orphaned blobs.

    Returns:
        dict: Reaper report (counts and per-share errors)
    """
    from celery_app import flask_app
    from quickshare.application.share_service import ShareService

    logger.info("Starting reaper task")

    try:
        share_service = flask_app.container.resolve(ShareService)
        report = share_service.run_reaper()
    except (DomainError, OSError) as e:
        error_msg = f"Reaper task failed: {e}"
        logger.error(error_msg, exc_info=True)
        return {
            "examined": 0,
            "reaped": 0,
            "bytes_freed": 0,
            "orphans_removed": 0,
            "partials_removed": 0,
            "errors": [error_msg],
        }

    stats = report.to_dict()
    logger.info(
        f"Reaper completed - Reaped: {stats['reaped']}, "
        f"Freed: {stats['bytes_freed']} bytes, "
        f"Orphans: {stats['orphans_removed']}, "
        f"Errors: {len(stats['errors'])}"
    )
    return stats
