"""
Test fixtures package.

Provides factory functions and test doubles for share lifecycle tests.
"""

from .domain_fixtures import (
    BASE_TIME,
    ChunkedStream,
    FailingStream,
    FakeClock,
    create_share,
    create_token,
)

__all__ = [
    "BASE_TIME",
    "ChunkedStream",
    "FailingStream",
    "FakeClock",
    "create_share",
    "create_token",
]
