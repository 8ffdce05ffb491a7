"""
Share lifecycle errors.

Domain exceptions know nothing about HTTP; each one only names the coarse
ErrorCategory it falls under and the status code the API answers with.
What a client actually sees is the category's canned ErrorMessage, never
the exception text, which may carry storage paths or token prefixes.
"""

from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple


class ErrorCategory(Enum):
    """Error categories reported to API clients."""

    SHARE_NOT_FOUND = "share_not_found"
    SHARE_GONE = "share_gone"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UPLOAD_ABORTED = "upload_aborted"
    UPLOAD_DISABLED = "upload_disabled"
    PIPE_DISABLED = "pipe_disabled"
    INVALID_REQUEST = "invalid_request"
    TIMEOUT = "timeout"
    SYSTEM_ERROR = "system_error"


class ErrorMessage(NamedTuple):
    title: str
    message: str
    action: str


ERROR_MESSAGES: Dict[ErrorCategory, ErrorMessage] = {
    ErrorCategory.SHARE_NOT_FOUND: ErrorMessage(
        "Share Not Found",
        "No file is shared under this link.",
        "Check that the link was copied completely.",
    ),
    ErrorCategory.SHARE_GONE: ErrorMessage(
        "Share Gone",
        "This file was shared, but the link has expired or reached its download limit.",
        "Ask the sender to upload the file again.",
    ),
    ErrorCategory.PAYLOAD_TOO_LARGE: ErrorMessage(
        "File Too Large",
        "The uploaded file exceeds the maximum allowed size.",
        "Compress or split the file and try again.",
    ),
    ErrorCategory.UPLOAD_ABORTED: ErrorMessage(
        "Upload Incomplete",
        "The upload ended before the whole file was received.",
        "Upload the file again.",
    ),
    ErrorCategory.UPLOAD_DISABLED: ErrorMessage(
        "Uploads Disabled",
        "This server does not accept uploads.",
        "Contact the server operator.",
    ),
    ErrorCategory.PIPE_DISABLED: ErrorMessage(
        "Pipes Disabled",
        "This server does not relay pipes.",
        "Upload the file as a share instead.",
    ),
    ErrorCategory.INVALID_REQUEST: ErrorMessage(
        "Invalid Request",
        "The request parameters are missing or malformed.",
        "Check the expiry and download limit values.",
    ),
    ErrorCategory.TIMEOUT: ErrorMessage(
        "Transfer Timed Out",
        "The transfer stalled and was cancelled.",
        "Check your connection and retry.",
    ),
    ErrorCategory.SYSTEM_ERROR: ErrorMessage(
        "Server Error",
        "The server could not complete the request.",
        "Retry later. Report the problem if it keeps happening.",
    ),
}


class DomainError(Exception):
    """
    Base of every share lifecycle error.

    ``original_error`` keeps the low-level exception (OSError, LockError...)
    that triggered this one, for logging and for callers that need to tell
    causes apart.
    """

    category = ErrorCategory.SYSTEM_ERROR
    http_status = 500

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ShareNotFoundError(DomainError):
    """The token was never issued, or its entry is already gone."""

    category = ErrorCategory.SHARE_NOT_FOUND
    http_status = 404


class ShareGoneError(DomainError):
    """The share exists but its expiry or download budget has run out."""

    category = ErrorCategory.SHARE_GONE
    http_status = 410


class ShareConflictError(DomainError):
    """The token is already registered."""


class PayloadTooLargeError(DomainError):
    category = ErrorCategory.PAYLOAD_TOO_LARGE
    http_status = 413

    def __init__(self, limit_bytes: int, original_error: Exception = None):
        super().__init__(f"Upload exceeds the limit of {limit_bytes} bytes", original_error)
        self.limit_bytes = limit_bytes


class UploadAbortedError(DomainError):
    """The body ended short of its declared length, or the stream failed."""

    category = ErrorCategory.UPLOAD_ABORTED
    http_status = 400


class ShareTimeoutError(DomainError):
    """Stream I/O or a per-token lock wait ran past its deadline."""

    category = ErrorCategory.TIMEOUT
    http_status = 504


class InternalStorageError(DomainError):
    """Blob store and registry disagree, or tokens kept colliding."""


class BlobNotFoundError(DomainError):
    def __init__(self, storage_key: str):
        super().__init__(f"Blob not found: {storage_key}")
        self.storage_key = storage_key


class InvalidPolicyError(DomainError, ValueError):
    """An expiry or download budget outside its allowed range."""

    category = ErrorCategory.INVALID_REQUEST
    http_status = 400


class ApplicationError(Exception):
    """
    An error as the API reports it.

    ``technical_message`` and ``context`` are for logs only; to_dict()
    exposes nothing but the category's canned message.
    """

    def __init__(
        self,
        category: ErrorCategory,
        technical_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.category = category
        self.technical_message = technical_message or ""
        self.context = context or {}
        self.title, self.message, self.action = ERROR_MESSAGES[category]
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.category.value,
            "title": self.title,
            "message": self.message,
            "action": self.action,
        }


def categorize_domain_error(error: Exception) -> Tuple[ErrorCategory, int]:
    """Category and HTTP status for ``error``; non-domain errors are 500s."""
    if isinstance(error, DomainError):
        return error.category, error.http_status
    return ErrorCategory.SYSTEM_ERROR, 500


def create_error_response(
    category: ErrorCategory,
    technical_message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    status_code: int = 400,
) -> Tuple[Dict[str, Any], int]:
    """(body, status) pair for a flask-restx resource to return."""
    return ApplicationError(category, technical_message, context).to_dict(), status_code
