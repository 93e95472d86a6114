# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""CommunityCore Backend - Main Application Module."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.response_patterns import register_error_handlers
from .api.routes import router as api_router
from .core.config import Settings, get_settings
from .core.database import ConnectionManager
from .core.logging_utils import configure_logging, get_logger
from .core.security import TokenVerifier
from .core.watchdog import ConnectionWatchdog

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    # Startup
    settings: Settings = app.state.settings
    manager: ConnectionManager = app.state.connection_manager
    configure_logging(level=settings.log_level, force=True)
    logger.info("Starting CommunityCore backend in %s mode...", settings.api_env)

    if not app.state.token_verifier.is_configured:
        logger.error("JWT_SECRET is not configured; authenticated routes will fail")

    try:
        await manager.connect()
        logger.info("Initial database connection established")
    except Exception as exc:
        # The manager has already scheduled a retry.
        logger.error("Initial database connection failed: %s", exc)

    watchdog = ConnectionWatchdog(manager, settings.db_watchdog_interval)
    watchdog.start()
    app.state.watchdog = watchdog

    yield

    # Shutdown
    logger.info("Shutting down CommunityCore backend...")
    await watchdog.stop()
    await manager.close()


@beartype
def create_app(
    settings: Settings | None = None,
    connection_manager: ConnectionManager | None = None,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (read from the environment when omitted)
        connection_manager: Database connection manager to share across requests
        token_verifier: Bearer-token verifier to share across requests

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="CommunityCore Backend",
        description="Community association platform API",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.connection_manager = (
        connection_manager or ConnectionManager.from_settings(settings)
    )
    app.state.token_verifier = token_verifier or TokenVerifier.from_settings(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(api_router)

    return app


# Create the application instance
app = create_app()


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()

    uvicorn.run(
        "community_core.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="info" if not settings.is_production else "error",
    )


if __name__ == "__main__":
    main()
