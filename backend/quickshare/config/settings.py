"""
Quickshare Configuration

Environment-driven settings for the share server. Command-line flags in
main.py are applied on top of these values.
"""

import os
from datetime import timedelta
from typing import Optional

MIB = 1024 * 1024


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


class QuickshareConfig:
    """Share server configuration."""

    REGISTRY_BACKENDS = ("memory", "redis")

    def __init__(self):
        self.host = os.getenv("QUICKSHARE_HOST", "0.0.0.0")
        self.port = _env_int("QUICKSHARE_PORT", 3000)
        self.data_dir = os.getenv("QUICKSHARE_DATA_DIR", "/data")
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "").rstrip("/") or None

        # Upload policy
        self.max_upload_mb = _env_int("MAX_UPLOAD_MB", 1024)
        self.default_ttl_seconds = _env_int("DEFAULT_TTL_SECONDS", 86400)
        self.max_ttl_seconds = _env_int("MAX_TTL_SECONDS", None)

        # Timeouts and background work
        self.io_timeout_seconds = _env_int("IO_TIMEOUT_SECONDS", 30)
        self.pipe_timeout_seconds = _env_int("PIPE_TIMEOUT_SECONDS", 300)
        self.reaper_interval_seconds = _env_int("REAPER_INTERVAL_SECONDS", 60)
        self.orphan_grace_seconds = _env_int("ORPHAN_GRACE_SECONDS", 3600)

        # Features
        self.registry_backend = os.getenv("REGISTRY_BACKEND", "memory").lower()
        self.upload_enabled = _env_flag("UPLOAD_ENABLED", True)
        self.pipe_enabled = _env_flag("PIPE_ENABLED", True)
        self.reaper_enabled = _env_flag("REAPER_ENABLED", True)
        self.cors_origins = os.getenv("CORS_ORIGINS", "*")

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * MIB

    @property
    def orphan_grace(self) -> timedelta:
        return timedelta(seconds=self.orphan_grace_seconds)

    def validate(self) -> None:
        """
        Check settings that would otherwise fail later at runtime.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.registry_backend not in self.REGISTRY_BACKENDS:
            raise ValueError(
                f"REGISTRY_BACKEND must be one of {', '.join(self.REGISTRY_BACKENDS)}, "
                f"got {self.registry_backend!r}"
            )
        if self.max_upload_mb <= 0:
            raise ValueError("MAX_UPLOAD_MB must be positive")
        if self.io_timeout_seconds <= 0:
            raise ValueError("IO_TIMEOUT_SECONDS must be positive")
        if self.pipe_timeout_seconds is not None and self.pipe_timeout_seconds <= 0:
            raise ValueError("PIPE_TIMEOUT_SECONDS must be positive")
        if self.reaper_interval_seconds <= 0:
            raise ValueError("REAPER_INTERVAL_SECONDS must be positive")
        if self.default_ttl_seconds is not None and self.default_ttl_seconds < 0:
            raise ValueError("DEFAULT_TTL_SECONDS may not be negative")
