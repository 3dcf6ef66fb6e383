"""
Inventory Sync Service FastAPI Application
==========================================

Main application entry point for the Inventory Sync Service.
Keeps search result caches consistent with product inventory and fans change
notifications out to connected clients.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.cache import router as cache_router
from .api.v1.health import router as health_router
from .api.v1.products import router as products_router
from .core.event_management import InventorySyncContainer
from .core.setting import get_settings
from .middleware.error.error_handler import setup_inventory_error_handling
from .utils.logging import setup_inventory_logging as setup_logging

settings = get_settings()
environment = settings.ENVIRONMENT.lower()
enable_file_logging = environment in ["production", "staging"]

logger = setup_logging(
    "inventory_sync_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=enable_file_logging,
)


def _build_lifespan(container: Optional[InventorySyncContainer]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan context manager for startup and shutdown."""
        startup_start = time.time()
        active = container or InventorySyncContainer.from_settings(settings)

        try:
            if active.database is not None:
                await active.database.create_tables()
            await active.start()
        except Exception as e:
            logger.error(
                "Failed to start inventory sync service",
                exc_info=True,
                extra={
                    "startup_duration_ms": int((time.time() - startup_start) * 1000),
                    "error_type": type(e).__name__,
                },
            )
            raise

        app.state.container = active
        logger.info(
            "Inventory sync service started successfully",
            extra={
                "total_startup_duration_ms": int((time.time() - startup_start) * 1000),
                "environment": environment,
                "channel": active.channel.name,
            },
        )

        yield

        shutdown_start = time.time()
        try:
            await active.close()
        finally:
            app.state.container = None
            logger.info(
                "Inventory sync service shutdown completed",
                extra={
                    "shutdown_duration_ms": int((time.time() - shutdown_start) * 1000)
                },
            )

    return lifespan


# Application factory
def create_app(container: Optional[InventorySyncContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=_build_lifespan(container),
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    setup_inventory_error_handling(app)
    _setup_cors(app)
    _setup_routers(app)

    return app


def _setup_cors(app: FastAPI) -> None:
    """Configure CORS settings with logging."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    logger.info(
        "CORS middleware configured",
        extra={
            "allowed_origins": len(settings.CORS_ORIGINS),
            "credentials_allowed": settings.CORS_CREDENTIALS,
        },
    )


def _setup_routers(app: FastAPI) -> None:
    """Configure all application routers with detailed logging."""
    routers_info: list[dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": "", "tags": ["Health"]})

    app.include_router(products_router, prefix="/api/v1", tags=["Inventory"])
    routers_info.append(
        {"router": "products", "prefix": "/api/v1", "tags": ["Inventory"]}
    )

    app.include_router(cache_router, prefix="/api/v1", tags=["Administration"])
    routers_info.append(
        {"router": "cache", "prefix": "/api/v1", "tags": ["Administration"]}
    )

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )


app = create_app()
