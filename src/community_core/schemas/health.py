# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Health and diagnostic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DatabaseStatus(BaseModel):
    """Connection-state snapshot exposed to health checks."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        validate_default=True,
    )

    connected: bool = Field(..., description="Handshake completed")
    connecting: bool = Field(..., description="Attempt in flight")
    reconnect_pending: bool = Field(..., description="Retry scheduled")
    configured: bool = Field(..., description="Whether DATABASE_URL is set")
    error_name: str | None = Field(default=None, description="Last error type")
    error_message: str | None = Field(default=None, description="Last error text")


class EnvironmentStatus(BaseModel):
    """Non-secret view of the runtime configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str = Field(..., description="API environment")
    has_jwt_secret: bool = Field(..., description="Whether JWT_SECRET is set")
    port: int = Field(..., ge=1, le=65535, description="Configured API port")


class HealthResponse(BaseModel):
    """Detailed service status."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: str = Field(..., pattern=r"^(ok|degraded)$")
    message: str = Field(default="Server is running")
    database: DatabaseStatus = Field(..., description="Database connection state")
    env: EnvironmentStatus = Field(..., description="Runtime configuration")
    time: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")


class ReadinessResponse(BaseModel):
    """Readiness probe outcome."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool = Field(..., description="Whether the database is connected")
    database: DatabaseStatus = Field(..., description="Database connection state")
