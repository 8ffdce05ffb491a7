"""
Reaper Worker

Runs Reaper passes on a background thread inside the web process.
Deployments that share a Redis registry across processes can use the
Celery beat task instead.
"""

import logging
import threading
from typing import Optional

from quickshare.domain.errors import DomainError
from quickshare.domain.share_lifecycle import ReapReport

from .share_service import ShareService

logger = logging.getLogger(__name__)


class ReaperWorker:
    """Interval scheduler calling ShareService.run_reaper until stopped."""

    def __init__(self, share_service: ShareService, interval_seconds: float = 60):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.share_service = share_service
        self.interval_seconds = interval_seconds
        self.last_report: Optional[ReapReport] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="quickshare-reaper", daemon=True
        )
        self._thread.start()
        logger.info(f"Reaper worker started, interval {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Reaper worker stopped")

    def run_once(self) -> Optional[ReapReport]:
        """Run one pass, logging instead of raising so the loop survives."""
        try:
            report = self.share_service.run_reaper()
        except (DomainError, OSError) as e:
            logger.error(f"Reaper pass failed: {e}", exc_info=True)
            return None

        self.last_report = report
        if report.reaped or report.orphans_removed or report.partials_removed:
            logger.info(
                f"Reaper pass: {len(report.reaped)} reaped, "
                f"{report.bytes_freed} bytes freed, "
                f"{report.orphans_removed} orphans, "
                f"{report.partials_removed} partial uploads"
            )
        return report

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Reaper pass crashed; retrying next interval")
