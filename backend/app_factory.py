"""
Application Factory

Creates and configures the Flask application with all dependencies.
The factory pattern keeps tests independent: each call builds its own
container, blob store, registry and reaper worker from the given config.
"""

from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS

from quickshare.application import (
    DependencyContainer,
    EventPublisher,
    ReaperWorker,
    ShareService,
)
from quickshare.config import QuickshareConfig
from quickshare.config.celery_config import make_celery
from quickshare.config.redis_config import (
    RedisConfig,
    get_redis_repository,
    init_redis,
    redis_health_check,
)
from quickshare.domain.errors import InternalStorageError
from quickshare.domain.pipes import PipeRelay
from quickshare.domain.share_lifecycle import IBlobStore, IShareRegistry
from quickshare.infrastructure import InMemoryShareRegistry, LocalBlobStore

# Room for multipart framing on top of the upload size cap
MULTIPART_OVERHEAD_BYTES = 1024 * 1024


def create_app(config: Optional[QuickshareConfig] = None) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Application configuration, read from the environment if None

    Returns:
        Configured Flask application

    Raises:
        ValueError: If the configuration is invalid
    """
    if config is None:
        config = QuickshareConfig()
    config.validate()

    app = Flask(__name__)
    app.quickshare_config = config
    app.config.update(
        MAX_CONTENT_LENGTH=config.max_upload_bytes + MULTIPART_OVERHEAD_BYTES,
        UPLOAD_ENABLED=config.upload_enabled,
        PIPE_ENABLED=config.pipe_enabled,
        PUBLIC_BASE_URL=config.public_base_url,
    )

    CORS(
        app,
        resources={
            r"/*": {
                "origins": config.cors_origins,
                "methods": ["GET", "POST", "OPTIONS"],
                "expose_headers": [
                    "Content-Disposition",
                    "Content-Length",
                    "X-Downloads-Remaining",
                ],
                "max_age": 3600,
            }
        },
    )

    _initialize_infrastructure(app)
    _initialize_services(app, config)
    _register_blueprints(app)
    _register_health_endpoint(app)

    return app


def _initialize_infrastructure(app: Flask) -> None:
    """
    Initialize Celery. Creating the Celery app does not contact the broker.

    Args:
        app: Flask application
    """
    app.celery = make_celery(app)


def _create_registry(config: QuickshareConfig) -> IShareRegistry:
    if config.registry_backend == "redis":
        from quickshare.infrastructure.redis_share_registry import RedisShareRegistry

        redis_config = RedisConfig()
        init_redis(redis_config)
        return RedisShareRegistry(
            get_redis_repository(redis_config.key_prefix),
            lock_timeout=config.io_timeout_seconds,
        )
    return InMemoryShareRegistry(lock_timeout=config.io_timeout_seconds)


def _initialize_services(app: Flask, config: QuickshareConfig) -> None:
    """
    Build the services and register them in a DependencyContainer.

    API handlers and tasks resolve services via app.container only;
    app.container.shutdown() stops the background worker again.

    Args:
        app: Flask application
        config: Application configuration
    """
    container = DependencyContainer()

    event_publisher = container.register_instance(EventPublisher, EventPublisher())
    container.setup_event_handlers(event_publisher)

    blob_store = container.register_instance(IBlobStore, LocalBlobStore(config.data_dir))
    registry = container.register_instance(IShareRegistry, _create_registry(config))

    share_service = container.register_instance(ShareService, ShareService(
        blob_store,
        registry,
        event_publisher=event_publisher,
        max_upload_bytes=config.max_upload_bytes,
        default_ttl_seconds=config.default_ttl_seconds,
        max_ttl_seconds=config.max_ttl_seconds,
        io_timeout=config.io_timeout_seconds,
        orphan_grace=config.orphan_grace,
    ))
    container.register_factory(
        PipeRelay, lambda: PipeRelay(timeout=config.pipe_timeout_seconds)
    )

    purged = share_service.purge_partial_uploads()
    if purged:
        app.logger.info(f"Removed {purged} partial uploads left from a previous run")

    app.reaper_worker = None
    if config.reaper_enabled:
        worker = container.register_instance(
            ReaperWorker, ReaperWorker(share_service, config.reaper_interval_seconds)
        )
        worker.start()
        container.on_shutdown(lambda: worker.stop(timeout=config.io_timeout_seconds))
        app.reaper_worker = worker

    app.container = container
    app.logger.info(
        f"Services initialized: registry={config.registry_backend}, "
        f"data_dir={config.data_dir}, max_upload={config.max_upload_mb} MiB"
    )


def _register_blueprints(app: Flask) -> None:
    from quickshare.api.v1 import api_v1_bp

    app.register_blueprint(api_v1_bp)
    app.logger.info(f"Share API mounted at {api_v1_bp.url_prefix}, docs at {api_v1_bp.url_prefix}/docs")


def _get_health_status(app: Flask) -> tuple[dict, int]:
    """
    Get health status of the registry, Redis and the reaper worker.

    Returns:
        Tuple of (health_status_dict, http_status_code)
    """
    config = app.quickshare_config
    health_status = {
        "status": "ok",
        "registry": config.registry_backend,
        "shares": None,
        "redis": "not_configured",
        "reaper": "disabled",
    }

    if config.registry_backend == "redis":
        if redis_health_check():
            health_status["redis"] = "connected"
        else:
            health_status["redis"] = "disconnected"
            health_status["status"] = "degraded"

    try:
        health_status["shares"] = app.container.resolve(IShareRegistry).count()
    except InternalStorageError as e:
        app.logger.warning(f"Health check could not count shares: {e}")
        health_status["status"] = "degraded"

    worker = app.container.resolve_optional(ReaperWorker)
    if worker is not None:
        health_status["reaper"] = "running" if worker.running else "stopped"
        if not worker.running:
            health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


def _register_health_endpoint(app: Flask) -> None:
    """
    Register health check endpoint.

    Args:
        app: Flask application
    """

    @app.route("/health", methods=["GET"])
    def health():
        """Overall health of the share server and its dependencies."""
        health_status, status_code = _get_health_status(app)
        return jsonify(health_status), status_code
