# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Token endpoints.

Mounted under ``/api/auth`` behind the database gate, like the rest of the
account routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status

from ...core.config import Settings
from ...core.database import ConnectionManager
from ...core.security import TokenVerifier
from ...schemas.auth import (
    AuthenticatedUser,
    EnvironmentCheckResponse,
    TokenStatusResponse,
    VerifyTokenRequest,
    VerifyTokenResponse,
)
from ..dependencies import (
    get_app_settings,
    get_connection_manager,
    get_current_user,
    get_token_verifier,
    require_db_connection,
)

router = APIRouter(dependencies=[Depends(require_db_connection)])


@router.get("/check-env", response_model=EnvironmentCheckResponse)
async def check_environment(
    settings: Settings = Depends(get_app_settings),
    manager: ConnectionManager = Depends(get_connection_manager),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> EnvironmentCheckResponse:
    """Report whether the secret is configured and usable."""
    return EnvironmentCheckResponse(
        has_jwt_secret=verifier.is_configured,
        jwt_test=verifier.self_test(),
        environment=settings.api_env,
        database_configured=manager.is_configured,
        server_time=datetime.now(timezone.utc),
    )


@router.get("/token-status", response_model=TokenStatusResponse)
async def token_status(
    user: AuthenticatedUser = Depends(get_current_user),
) -> TokenStatusResponse:
    """Confirm the caller's token is valid."""
    return TokenStatusResponse(user_id=user.id)


@router.post("/verify-token", response_model=VerifyTokenResponse)
async def verify_token(
    body: VerifyTokenRequest,
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> VerifyTokenResponse:
    """Verify a token passed in the request body."""
    if not body.token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No token provided",
        )

    inspection = verifier.inspect_token(body.token)
    return VerifyTokenResponse(user=inspection.user, expires_at=inspection.expires_at)
