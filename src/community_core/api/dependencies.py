# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies for authentication and database availability.

The connection manager and token verifier live on ``app.state``; these
dependencies fetch them from there so tests can build an application with
fresh instances. All of them are coroutines so the verification cache and the
connection state are only ever touched from the event loop.
"""

from beartype import beartype
from fastapi import Depends, Header, HTTPException, Request, status

from ..core.config import Settings
from ..core.database import ConnectionManager
from ..core.exceptions import DatabaseUnavailableError
from ..core.logging_utils import get_logger
from ..core.security import TokenVerifier
from ..schemas.auth import AuthenticatedUser

logger = get_logger(__name__)

ADMIN_PLAN_TYPE = "admin"


@beartype
def get_app_settings(request: Request) -> Settings:
    """Provide the settings the application was built with."""
    return request.app.state.settings


@beartype
def get_connection_manager(request: Request) -> ConnectionManager:
    """Provide the application's connection manager."""
    return request.app.state.connection_manager


@beartype
def get_token_verifier(request: Request) -> TokenVerifier:
    """Provide the application's token verifier."""
    return request.app.state.token_verifier


async def require_db_connection(
    manager: ConnectionManager = Depends(get_connection_manager),
) -> None:
    """Gate a route on an established database connection.

    Raises:
        DatabaseUnavailableError: If no connection could be established
    """
    if manager.is_connected:
        return

    try:
        logger.info("Establishing database connection before processing request...")
        await manager.ensure_connected()
    except Exception as exc:
        logger.error("Failed to establish database connection for request: %s", exc)
        raise DatabaseUnavailableError(exc, manager.snapshot()) from exc


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthenticatedUser:
    """Authenticate the bearer token and attach the identity to the request.

    Raises:
        AuthError: Rendered by the registered exception handler
    """
    logger.debug("Auth check for %s %s", request.method, request.url.path)
    user = verifier.authenticate(authorization)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(default=None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthenticatedUser | None:
    """Attach the identity when a valid token is present; never reject."""
    user = verifier.authenticate_optional(authorization)
    request.state.user = user
    return user


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> AuthenticatedUser:
    """Allow only users whose plan type is ``admin``.

    Raises:
        HTTPException: 404 if the user does not exist, 403 if not an admin,
            500 if the lookup fails
    """
    try:
        async with manager.acquire() as connection:
            row = await connection.fetchrow(
                "SELECT plan_type FROM users WHERE id::text = $1",
                user.id,
            )
    except Exception as exc:
        logger.error("Admin authorization error: %s", exc)
        # NOTE: This is a dependency function, not an endpoint
        # We need to keep raising HTTPException here as FastAPI expects it
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error during admin authorization",
        ) from exc

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    if row["plan_type"] != ADMIN_PLAN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
