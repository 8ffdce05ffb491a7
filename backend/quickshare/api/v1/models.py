"""
API Models for response documentation
"""

from flask_restx import fields

from quickshare.api.v1 import api

share_created_response = api.model(
    "ShareCreated",
    {
        "token": fields.String(description="Share token, the only credential for the file"),
        "url": fields.String(description="Download URL"),
        "size_bytes": fields.Integer(description="Stored size in bytes"),
        "expires_at": fields.String(
            description="Expiry timestamp (ISO 8601)", allow_null=True
        ),
        "downloads_remaining": fields.Integer(
            description="Download budget, null for unlimited", allow_null=True
        ),
        "filename": fields.String(description="Original file name", allow_null=True),
    },
)

share_stat_response = api.model(
    "ShareStat",
    {
        "token": fields.String(description="Share token"),
        "size_bytes": fields.Integer(description="Stored size in bytes"),
        "created_at": fields.String(description="Upload timestamp (ISO 8601)"),
        "expires_at": fields.String(
            description="Expiry timestamp (ISO 8601)", allow_null=True
        ),
        "downloads_remaining": fields.Integer(
            description="Downloads left, null for unlimited", allow_null=True
        ),
        "remaining_seconds": fields.Integer(
            description="Seconds until expiry, null for no time limit", allow_null=True
        ),
        "filename": fields.String(description="Original file name", allow_null=True),
    },
)

pipe_sent_response = api.model(
    "PipeSent",
    {
        "name": fields.String(description="Pipe name"),
        "bytes_relayed": fields.Integer(description="Bytes read by the receiver"),
    },
)

error_response = api.model(
    "ErrorResponse",
    {
        "error": fields.String(description="Error category"),
        "title": fields.String(description="Short error title"),
        "message": fields.String(description="User-facing explanation"),
        "action": fields.String(description="Suggested next step"),
    },
)
