# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API router aggregation.

This module combines the routers into a single router that can be mounted
on the main FastAPI application.
"""

from fastapi import APIRouter

from .admin import router as admin_router
from .auth import router as auth_router
from .health import router as health_router

router = APIRouter()

router.include_router(health_router, tags=["health"])
router.include_router(auth_router, prefix="/api/auth", tags=["auth"])
router.include_router(admin_router, prefix="/api/admin", tags=["admin"])


__all__ = ["router"]
