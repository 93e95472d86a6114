# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Admin access endpoints."""

from fastapi import APIRouter, Depends

from ...schemas.auth import AdminAccessResponse, AuthenticatedUser
from ..dependencies import require_admin, require_db_connection

router = APIRouter(dependencies=[Depends(require_db_connection)])


@router.get("/access", response_model=AdminAccessResponse)
async def admin_access(
    user: AuthenticatedUser = Depends(require_admin),
) -> AdminAccessResponse:
    """Confirm the caller holds admin privileges."""
    return AdminAccessResponse(user_id=user.id)
