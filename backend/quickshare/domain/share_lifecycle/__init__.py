"""
Share Lifecycle Domain

Handles upload ingestion, token-based retrieval, expiry policy and reclamation.
"""

from .blob_store import BlobInfo, IBlobStore
from .entities import ConsumeResult, Share, ShareStat, utc_now
from .reaper import ReapReport, Reaper
from .registry import IShareRegistry, consume_download
from .services import IngestPipeline, RetrievalPipeline, ShareDownload
from .token_issuer import TokenIssuer
from .value_objects import (
    InvalidShareTokenError,
    SharePolicy,
    ShareState,
    ShareToken,
    sanitize_filename,
)

__all__ = [
    "BlobInfo",
    "ConsumeResult",
    "IBlobStore",
    "IShareRegistry",
    "IngestPipeline",
    "InvalidShareTokenError",
    "ReapReport",
    "Reaper",
    "RetrievalPipeline",
    "Share",
    "ShareDownload",
    "SharePolicy",
    "ShareStat",
    "ShareState",
    "ShareToken",
    "TokenIssuer",
    "consume_download",
    "sanitize_filename",
    "utc_now",
]
