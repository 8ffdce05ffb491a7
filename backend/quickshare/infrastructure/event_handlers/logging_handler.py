"""
Logging Event Handler

Infrastructure event handler for logging domain events.
Domain layer remains unaware of logging infrastructure.
"""

import logging

from quickshare.domain.events import (
    DomainEvent,
    ShareCreatedEvent,
    ShareDownloadedEvent,
    ShareExpiredEvent,
    ShareReapedEvent,
    UploadRejectedEvent,
)


def _short(token: str) -> str:
    return token[:8]


class LoggingEventHandler:
    """
    Infrastructure event handler for logging domain events.

    Tokens are credentials, so only their first 8 characters are logged.
    """

    def __init__(self, logger: logging.Logger):
        """
        Initialize with logger instance.

        Args:
            logger: Python logging.Logger instance
        """
        self.logger = logger

    def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event by logging it.

        Args:
            event: Domain event to log
        """
        try:
            if isinstance(event, ShareCreatedEvent):
                self._handle_share_created(event)
            elif isinstance(event, ShareDownloadedEvent):
                self._handle_share_downloaded(event)
            elif isinstance(event, ShareExpiredEvent):
                self._handle_share_expired(event)
            elif isinstance(event, ShareReapedEvent):
                self._handle_share_reaped(event)
            elif isinstance(event, UploadRejectedEvent):
                self._handle_upload_rejected(event)
            else:
                self.logger.debug(
                    f"Unhandled event: {event.__class__.__name__} "
                    f"(aggregate_id={_short(event.aggregate_id)})"
                )
        except Exception as e:
            # Log handler errors but don't fail the operation
            self.logger.error(
                f"Error handling event {event.__class__.__name__}: {e}",
                exc_info=True,
            )

    def _handle_share_created(self, event: ShareCreatedEvent) -> None:
        expires = event.expires_at.isoformat() if event.expires_at else "never"
        downloads = event.max_downloads if event.max_downloads is not None else "unlimited"
        self.logger.info(
            f"Share {_short(event.aggregate_id)} created: {event.size_bytes} bytes, "
            f"expires {expires}, downloads {downloads}"
        )

    def _handle_share_downloaded(self, event: ShareDownloadedEvent) -> None:
        remaining = (
            event.downloads_remaining
            if event.downloads_remaining is not None
            else "unlimited"
        )
        self.logger.info(
            f"Share {_short(event.aggregate_id)} downloaded, {remaining} remaining"
            + (" (last download)" if event.last_download else "")
        )

    def _handle_share_expired(self, event: ShareExpiredEvent) -> None:
        self.logger.warning(
            f"Share {_short(event.aggregate_id)} expired early: {event.reason}"
        )

    def _handle_share_reaped(self, event: ShareReapedEvent) -> None:
        self.logger.info(
            f"Share {_short(event.aggregate_id)} reaped, {event.bytes_freed} bytes freed"
        )

    def _handle_upload_rejected(self, event: UploadRejectedEvent) -> None:
        self.logger.warning(f"Upload rejected ({event.reason}): {event.message}")
