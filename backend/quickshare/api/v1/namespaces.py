"""
API Namespaces - Organized endpoint groups
"""

import socket
from typing import BinaryIO, Iterator, Optional

from flask import Response, current_app, request, send_file
from flask_restx import Namespace, Resource
from werkzeug.exceptions import ClientDisconnected, RequestEntityTooLarge

from quickshare.api.v1.models import (
    error_response,
    pipe_sent_response,
    share_created_response,
    share_stat_response,
)
from quickshare.application.share_service import ShareService
from quickshare.domain.errors import (
    DomainError,
    ErrorCategory,
    ShareTimeoutError,
    UploadAbortedError,
    categorize_domain_error,
    create_error_response,
)
from quickshare.domain.pipes import PipeRelay, PipeTransfer


def _client_read_error(error: Exception) -> DomainError:
    """Timeout when the socket read timed out, aborted upload otherwise."""
    cause = error if isinstance(error, socket.timeout) else error.__cause__ or error.__context__
    if isinstance(cause, socket.timeout):
        return ShareTimeoutError("Client stalled during upload", error)
    return UploadAbortedError("Client disconnected during upload", error)


class _RequestBody:
    """Request input stream reporting client failures as domain errors."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        try:
            return self._stream.read(size)
        except (ClientDisconnected, socket.timeout) as e:
            raise _client_read_error(e) from e


def _domain_error_response(error: DomainError, context: str):
    category, status_code = categorize_domain_error(error)
    if status_code >= 500:
        current_app.logger.error(f"{context}: {error}", exc_info=True)
    else:
        current_app.logger.info(f"{context}: {error}")
    return create_error_response(category, str(error), status_code=status_code)


def _share_url(token: str) -> str:
    base = current_app.config.get("PUBLIC_BASE_URL") or request.host_url.rstrip("/")
    return f"{base}{request.script_root}/api/v1/shares/{token}"


# =============================================================================
# Share Namespace - Upload and token-based download
# =============================================================================

share_ns = Namespace("shares", description="Ephemeral file shares")


@share_ns.route("/")
class ShareUpload(Resource):
    """Upload a file as a new share"""

    @share_ns.doc(
        "create_share",
        params={
            "expires_in": "Lifetime in seconds (defaults to the server default)",
            "max_downloads": "Number of allowed downloads (default unlimited)",
            "filename": "File name offered on download (raw uploads)",
        },
    )
    @share_ns.response(201, "Share created", share_created_response)
    @share_ns.response(400, "Bad Request", error_response)
    @share_ns.response(403, "Uploads Disabled", error_response)
    @share_ns.response(413, "Payload Too Large", error_response)
    @share_ns.response(504, "Upload Timeout", error_response)
    def post(self):
        """
        Upload a file

        Accepts either multipart/form-data with a `file` field or the raw
        file as request body. Returns the share token and download URL.
        """
        if not current_app.config.get("UPLOAD_ENABLED", True):
            return create_error_response(
                ErrorCategory.UPLOAD_DISABLED, "Uploads are disabled", status_code=403
            )

        share_service = current_app.container.resolve(ShareService)

        try:
            if request.mimetype == "multipart/form-data":
                upload = request.files.get("file")
                if upload is None:
                    return create_error_response(
                        ErrorCategory.INVALID_REQUEST,
                        "Missing 'file' field in multipart body",
                        status_code=400,
                    )
                stream = upload.stream
                declared_size: Optional[int] = None
                filename = request.values.get("filename") or upload.filename
            else:
                stream = _RequestBody(request.stream)
                declared_size = request.content_length
                filename = request.args.get("filename")

            share = share_service.create_share(
                stream,
                expires_in=request.values.get("expires_in"),
                max_downloads=request.values.get("max_downloads"),
                declared_size=declared_size,
                filename=filename,
            )

        except RequestEntityTooLarge as e:
            return create_error_response(
                ErrorCategory.PAYLOAD_TOO_LARGE, str(e), status_code=413
            )
        except (ClientDisconnected, socket.timeout) as e:
            return _domain_error_response(_client_read_error(e), "Upload failed")
        except DomainError as e:
            return _domain_error_response(e, "Upload failed")

        return {
            "token": share.token,
            "url": _share_url(share.token),
            "size_bytes": share.size_bytes,
            "expires_at": share.expires_at.isoformat() if share.expires_at else None,
            "downloads_remaining": share.downloads_remaining,
            "filename": share.filename,
        }, 201


@share_ns.route("/<string:token>")
@share_ns.param("token", "The share token")
class ShareDownloadResource(Resource):
    """Download a share"""

    @share_ns.doc("download_share")
    @share_ns.response(200, "File content")
    @share_ns.response(404, "Share Not Found", error_response)
    @share_ns.response(410, "Share Gone", error_response)
    @share_ns.response(500, "Internal Server Error", error_response)
    def get(self, token):
        """
        Download a shared file

        Each successful request consumes one download. A download that is
        cancelled half-way still counts.
        """
        share_service = current_app.container.resolve(ShareService)

        try:
            download = share_service.open_download(token)
        except DomainError as e:
            return _domain_error_response(e, f"Download of share {token[:8]} refused")

        share = download.share
        # send_file closes the download when the response is closed
        response = send_file(
            download,
            mimetype="application/octet-stream",
            as_attachment=True,
            download_name=share.filename or f"quickshare_{token[:8]}",
            conditional=False,
            etag=False,
        )
        response.content_length = share.size_bytes
        if share.downloads_remaining is not None:
            response.headers["X-Downloads-Remaining"] = str(share.downloads_remaining)
        return response


@share_ns.route("/<string:token>/stat")
@share_ns.param("token", "The share token")
class ShareStatResource(Resource):
    """Share metadata"""

    @share_ns.doc("stat_share")
    @share_ns.response(200, "Success", share_stat_response)
    @share_ns.response(404, "Share Not Found", error_response)
    @share_ns.response(410, "Share Gone", error_response)
    def get(self, token):
        """
        Get share metadata

        Does not consume a download.
        """
        share_service = current_app.container.resolve(ShareService)

        try:
            stat = share_service.get_stat(token)
        except DomainError as e:
            return _domain_error_response(e, f"Stat of share {token[:8]} refused")

        return stat.to_dict(), 200


# =============================================================================
# Pipe Namespace - Storage-less sender/receiver relay
# =============================================================================

pipe_ns = Namespace("pipes", description="Relay a body from one client to another")


def _pipes_disabled():
    return create_error_response(
        ErrorCategory.PIPE_DISABLED, "Pipes are disabled", status_code=404
    )


def _relay_body(transfer: PipeTransfer) -> Iterator[bytes]:
    try:
        yield from transfer.iter_chunks()
    finally:
        transfer.finish()


@pipe_ns.route("/<path:name>")
@pipe_ns.param("name", "The pipe name")
class Pipe(Resource):
    """Named pipe"""

    @pipe_ns.doc("send_pipe")
    @pipe_ns.response(200, "Body relayed", pipe_sent_response)
    @pipe_ns.response(404, "Pipes Disabled", error_response)
    @pipe_ns.response(504, "No Receiver", error_response)
    def post(self, name):
        """
        Send a body through a pipe

        Blocks until a receiver has read the whole body.
        """
        if not current_app.config.get("PIPE_ENABLED", True):
            return _pipes_disabled()

        relay = current_app.container.resolve(PipeRelay)
        try:
            bytes_relayed = relay.send(name, _RequestBody(request.stream))
        except DomainError as e:
            return _domain_error_response(e, f"Pipe {name!r} send failed")

        return {"name": name, "bytes_relayed": bytes_relayed}, 200

    @pipe_ns.doc("receive_pipe")
    @pipe_ns.response(200, "Relayed body")
    @pipe_ns.response(404, "Pipes Disabled", error_response)
    @pipe_ns.response(504, "No Sender", error_response)
    def get(self, name):
        """
        Receive a body from a pipe

        Blocks until a sender offers a body.
        """
        if not current_app.config.get("PIPE_ENABLED", True):
            return _pipes_disabled()

        relay = current_app.container.resolve(PipeRelay)
        try:
            transfer = relay.receive(name)
        except DomainError as e:
            return _domain_error_response(e, f"Pipe {name!r} receive failed")

        response = Response(_relay_body(transfer), mimetype="application/octet-stream")
        # Covers responses closed before the body was iterated
        response.call_on_close(transfer.finish)
        return response
