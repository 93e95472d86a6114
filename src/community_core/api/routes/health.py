# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Health check endpoints.

None of these routes pass through the database gate: they report the
connection state instead of requiring it.
"""

from datetime import datetime, timezone

from beartype import beartype
from fastapi import APIRouter, Depends, Response, status

from ... import __version__
from ...core.config import Settings
from ...core.database import ConnectionManager
from ...core.logging_utils import get_logger
from ...core.security import TokenVerifier
from ...schemas.health import (
    DatabaseStatus,
    EnvironmentStatus,
    HealthResponse,
    ReadinessResponse,
)
from ..dependencies import get_app_settings, get_connection_manager, get_token_verifier

logger = get_logger(__name__)

router = APIRouter()


@beartype
def database_status(manager: ConnectionManager) -> DatabaseStatus:
    """Convert the manager's snapshot into the public health shape."""
    snapshot = manager.snapshot()
    return DatabaseStatus(
        connected=snapshot.is_connected,
        connecting=snapshot.is_connecting,
        reconnect_pending=snapshot.reconnect_pending,
        configured=manager.is_configured,
        error_name=snapshot.error_name,
        error_message=snapshot.error_message,
    )


@router.get("/health")
async def liveness() -> dict[str, str]:
    """Simple liveness endpoint for deployment monitoring."""
    return {"status": "ok"}


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_app_settings),
    manager: ConnectionManager = Depends(get_connection_manager),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> HealthResponse:
    """Report database state and configuration without requiring a connection."""
    database = database_status(manager)
    return HealthResponse(
        status="ok" if database.connected else "degraded",
        database=database,
        env=EnvironmentStatus(
            environment=settings.api_env,
            has_jwt_secret=verifier.is_configured,
            port=settings.api_port,
        ),
        time=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get("/api/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    settings: Settings = Depends(get_app_settings),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> ReadinessResponse:
    """Readiness probe: wait briefly for the database, 503 if it stays down."""
    ready = await manager.wait_for_connection(settings.db_ready_timeout)
    if not ready:
        logger.warning("Readiness check failed: database not connected")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(ready=ready, database=database_status(manager))
