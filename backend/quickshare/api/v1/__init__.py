"""
Quickshare HTTP API, version 1.

Mounted at /api/v1 with Swagger UI at /api/v1/docs. Two namespaces:
``/shares`` for stored uploads and ``/pipes`` for unbuffered relays.
"""

from flask import Blueprint
from flask_restx import Api

api_v1_bp = Blueprint("api_v1", __name__, url_prefix="/api/v1")

api = Api(
    api_v1_bp,
    version="1.0",
    title="Quickshare API",
    description="Ephemeral file sharing with expiring, download-limited links",
    doc="/docs",
)

# Namespaces import `api` for their models
from .namespaces import pipe_ns, share_ns  # noqa: E402

api.add_namespace(share_ns, path="/shares")
api.add_namespace(pipe_ns, path="/pipes")
