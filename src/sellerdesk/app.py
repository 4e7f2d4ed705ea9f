"""Application entry point serving the inbound webhooks over FastAPI.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **SQLite** schema creation and a per-request connection factory
- **Inbound webhooks** for SMS and email, plus ``/health``, ``/ready``, ``/metrics``
- **Request IDs** bound into structlog contextvars for every HTTP request
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, closing
from functools import partial
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from sellerdesk.config import Settings, get_settings, validate_credentials
from sellerdesk.health import register_health_routes
from sellerdesk.ingestion.webhook import router as webhook_router
from sellerdesk.observability.metrics import setup_metrics
from sellerdesk.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from sellerdesk.storage.schema import connect, init_schema

logger = structlog.get_logger()


def configure_logging(production: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Create the database schema and the shared service registry.

    Each webhook request opens its own connection through
    ``services["connection_factory"]`` so no connection is shared between
    concurrent requests.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized services keyed by name.
    """
    if settings is None:
        settings = get_settings()

    db_path = settings.database_path
    db_path.parent.mkdir(parents=True, exist_ok=True)

    connection_factory = partial(connect, db_path, busy_timeout=settings.database_busy_timeout)
    with closing(connection_factory()) as conn:
        init_schema(conn)
    logger.info("database_ready", path=str(db_path))

    return {
        "_settings": settings,
        "connection_factory": connection_factory,
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup and shutdown of the HTTP server."""
    logger.info("webhook_server_started")
    yield
    logger.info("webhook_server_stopped")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with webhook, health, and metrics routes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Seller Desk Webhooks", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.include_router(webhook_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    fastapi_app.add_middleware(RequestIdMiddleware)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure logging, initialize services, serve HTTP."""
    settings = get_settings()
    configure_logging(production=settings.production)
    logger.info("application_starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.webhook_port,
        log_level="info",
    )
    await uvicorn.Server(config).serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
