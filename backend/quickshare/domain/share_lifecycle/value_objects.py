"""
Share Lifecycle Value Objects

Immutable value objects for type safety and validation.
"""

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from quickshare.domain.errors import InvalidPolicyError


class ShareState(Enum):
    """
    Lifecycle state of a share.

    ACTIVE -> EXPIRED -> DELETED. DELETED is terminal; the registry entry is
    removed when a share reaches it.
    """

    ACTIVE = "active"
    EXPIRED = "expired"
    DELETED = "deleted"


class InvalidShareTokenError(ValueError):
    """Raised when a share token is malformed."""
    pass


TOKEN_BYTES = 32
MIN_TOKEN_LENGTH = 32
_TOKEN_ALPHABET = frozenset(string.ascii_letters + string.digits + "-_")


@dataclass(frozen=True)
class ShareToken:
    """
    Value object representing a validated share token.

    Tokens must be at least 32 characters long and URL-safe.
    """
    value: str

    def __post_init__(self):
        if not self.is_well_formed(self.value):
            raise InvalidShareTokenError(
                f"Invalid share token: must be at least {MIN_TOKEN_LENGTH} URL-safe characters"
            )

    @staticmethod
    def is_well_formed(value: object) -> bool:
        """
        Validate token shape without raising.

        Requirements:
        - Must be a non-empty string
        - Must be at least 32 characters long
        - Must be URL-safe (alphanumeric, hyphens, underscores)
        """
        if not value or not isinstance(value, str):
            return False
        if len(value) < MIN_TOKEN_LENGTH:
            return False
        return all(c in _TOKEN_ALPHABET for c in value)

    @classmethod
    def generate(cls) -> "ShareToken":
        """
        Generate a new cryptographically secure share token.

        Uses secrets.token_urlsafe(32): 256 bits of randomness, about 43
        characters once base64 encoded.
        """
        return cls(secrets.token_urlsafe(TOKEN_BYTES))

    def __str__(self) -> str:
        return self.value


def sanitize_filename(filename: Optional[str]) -> Optional[str]:
    """
    Strip path separators and control characters from a client file name.

    Returns:
        Cleaned name, or None when nothing usable remains
    """
    if not filename:
        return None
    cleaned = "".join(
        c for c in filename.replace("/", "").replace("\\", "") if c.isprintable()
    ).strip()
    if cleaned in ("", ".", ".."):
        return None
    return cleaned[:255]


@dataclass(frozen=True)
class SharePolicy:
    """
    Validity policy attached to an upload.

    Attributes:
        expires_at: Absolute expiry timestamp, None for no time limit
        max_downloads: Download budget, None for unlimited
        max_size_bytes: Enforced size cap for the upload
    """
    max_size_bytes: int
    expires_at: Optional[datetime] = None
    max_downloads: Optional[int] = None

    def __post_init__(self):
        if self.max_size_bytes <= 0:
            raise InvalidPolicyError("max_size_bytes must be positive")
        if self.max_downloads is not None and self.max_downloads <= 0:
            raise InvalidPolicyError("max_downloads must be a positive integer")
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            object.__setattr__(
                self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc)
            )

    @classmethod
    def from_request(
        cls,
        max_size_bytes: int,
        expires_in: Optional[object] = None,
        max_downloads: Optional[object] = None,
        default_ttl_seconds: Optional[int] = None,
        max_ttl_seconds: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "SharePolicy":
        """
        Build a policy from raw request parameters.

        Args:
            max_size_bytes: Size cap configured for the server
            expires_in: Lifetime in seconds (string or int), None for the default
            max_downloads: Download budget (string or int), None for unlimited
            default_ttl_seconds: Lifetime used when expires_in is omitted
                (None or 0 means no time limit)
            max_ttl_seconds: Upper bound on the requested lifetime
            now: Reference time, defaults to the current UTC time

        Raises:
            InvalidPolicyError: If a parameter is not a positive integer or
                exceeds the configured bounds
        """
        now = now or datetime.now(timezone.utc)

        ttl = _parse_positive_int("expires_in", expires_in)
        if ttl is None:
            ttl = default_ttl_seconds or None
        if ttl is not None and max_ttl_seconds and ttl > max_ttl_seconds:
            raise InvalidPolicyError(
                f"expires_in may not exceed {max_ttl_seconds} seconds"
            )

        return cls(
            max_size_bytes=max_size_bytes,
            expires_at=now + timedelta(seconds=ttl) if ttl is not None else None,
            max_downloads=_parse_positive_int("max_downloads", max_downloads),
        )


def _parse_positive_int(name: str, raw: Optional[object]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise InvalidPolicyError(f"{name} must be a positive integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise InvalidPolicyError(f"{name} must be a positive integer", e) from e
    if value <= 0:
        raise InvalidPolicyError(f"{name} must be a positive integer")
    return value
