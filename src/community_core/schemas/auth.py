# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AuthenticatedUser(BaseModel):
    """Identity decoded from a verified bearer token."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",  # Tokens may carry claims we do not use
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    id: str = Field(..., min_length=1, description="Unique user identifier")


class TokenInspection(BaseModel):
    """Result of inspecting a token outside the request pipeline."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        validate_default=True,
    )

    user: AuthenticatedUser = Field(..., description="Decoded identity")
    expires_at: datetime | None = Field(
        default=None, description="Expiry instant from the exp claim"
    )


class VerifyTokenRequest(BaseModel):
    """Body of the verify-token endpoint."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    token: str | None = Field(default=None, description="Token to verify")


class VerifyTokenResponse(BaseModel):
    """Outcome of a successful token verification."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    valid: bool = Field(default=True, description="Always true on success")
    user: AuthenticatedUser = Field(..., description="Decoded identity")
    expires_at: datetime | None = Field(default=None, description="Token expiry")


class TokenStatusResponse(BaseModel):
    """Status of the caller's own token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    valid: bool = Field(default=True, description="Always true on success")
    user_id: str = Field(..., description="Authenticated user identifier")
    message: str = Field(default="Token is valid", description="Status message")


class JWTSelfTest(BaseModel):
    """Outcome of signing and verifying a throwaway token."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool = Field(..., description="Whether sign + verify succeeded")
    error: str | None = Field(default=None, description="Failure reason")


class EnvironmentCheckResponse(BaseModel):
    """Configuration report for operators."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: str = Field(default="Environment check successful")
    has_jwt_secret: bool = Field(..., description="Whether JWT_SECRET is set")
    jwt_test: JWTSelfTest = Field(..., description="Signing self-test")
    environment: str = Field(..., description="API environment")
    database_configured: bool = Field(..., description="Whether DATABASE_URL is set")
    server_time: datetime = Field(..., description="Current server time")


class AdminAccessResponse(BaseModel):
    """Confirmation that the caller passed the admin gate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_admin: bool = Field(default=True)
    user_id: str = Field(..., description="Admin user identifier")
