"""
Infrastructure Layer

Concrete adapters for the share lifecycle: filesystem blob storage and
share registries (in-memory and Redis).
"""

from .in_memory_share_registry import InMemoryShareRegistry
from .local_blob_store import LocalBlobStore

__all__ = ["InMemoryShareRegistry", "LocalBlobStore"]
