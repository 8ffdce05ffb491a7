"""
main.py

Quickshare share server: upload a file, get a link that expires after a
time limit or a number of downloads.

Dependencies:
  - Python packages: Flask, flask-restx, flask-cors, redis, celery
  - Infrastructure: Redis server (only with REGISTRY_BACKEND=redis)

Notes:
  - API v1 endpoints available at /api/v1/ with Swagger docs at /api/v1/docs
  - Uses application factory pattern for better testability
  - Command-line flags override the matching environment variables
"""

import argparse
import logging
import os
from typing import List, Optional, Tuple, Type

from werkzeug.serving import WSGIRequestHandler

from app_factory import create_app
from quickshare.config import QuickshareConfig


def parse_bind(value: str) -> Tuple[str, int]:
    """
    Split a bind address into host and port.

    Accepts "host:port", "[ipv6]:port" and a bare ":port".

    Raises:
        argparse.ArgumentTypeError: If the address cannot be parsed
    """
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid bind address: {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", int(port)


def request_handler_for(config: QuickshareConfig) -> Type[WSGIRequestHandler]:
    """
    Request handler whose socket reads and writes give up after the I/O
    timeout, so a stalled client cannot hold a request thread forever.
    """

    class QuickshareRequestHandler(WSGIRequestHandler):
        timeout = config.io_timeout_seconds

    return QuickshareRequestHandler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quickshare", description="Ephemeral file sharing server"
    )
    parser.add_argument(
        "--bind", type=parse_bind, default=None,
        help="address to listen on, e.g. [::]:3000 (default from QUICKSHARE_HOST/PORT)",
    )
    parser.add_argument(
        "--limit", type=int, default=None,
        help="upload size limit in MiB (default from MAX_UPLOAD_MB, 1024)",
    )
    parser.add_argument("--no-upload", action="store_true", help="disable uploads")
    parser.add_argument("--no-pipe", action="store_true", help="disable pipes")
    return parser


def apply_args(config: QuickshareConfig, args: argparse.Namespace) -> QuickshareConfig:
    """Override config values with the command-line flags that were given."""
    if args.bind is not None:
        config.host, config.port = args.bind
    if args.limit is not None:
        config.max_upload_mb = args.limit
    if args.no_upload:
        config.upload_enabled = False
    if args.no_pipe:
        config.pipe_enabled = False
    return config


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    args = build_parser().parse_args(argv)
    config = apply_args(QuickshareConfig(), args)
    app = create_app(config)

    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"
    # Threaded so a pipe sender and its receiver can be served at once
    app.run(host=config.host, port=config.port, debug=debug, threaded=True,
            use_reloader=False, request_handler=request_handler_for(config))


if __name__ == "__main__":
    main()
