# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Structured error responses and the exception handlers that produce them."""

from typing import Any

from beartype import beartype
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import Settings
from ..core.exceptions import AuthError, DatabaseUnavailableError
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class ErrorResponse(BaseModel):
    """Standardized error response for pipeline failures."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")


@beartype
def auth_error_response(exc: AuthError) -> JSONResponse:
    """Render an authentication failure with its stable error code."""
    error = ErrorResponse(
        error=exc.message,
        error_code=exc.error_code,
        details=exc.details(),
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error.model_dump(),
        headers=headers,
    )


@beartype
def database_error_response(
    exc: DatabaseUnavailableError, settings: Settings
) -> JSONResponse:
    """Render a database outage; driver details only outside production."""
    details: dict[str, Any] | None = None
    if not settings.is_production:
        details = {
            "error_name": type(exc.cause).__name__,
            "error_message": str(exc.cause),
            "connection_state": exc.snapshot.as_dict(),
        }

    error = ErrorResponse(
        error=str(exc),
        error_code=exc.error_code,
        details=details,
    )
    return JSONResponse(status_code=exc.status_code, content=error.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers mapping the error taxonomy to JSON responses."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.info(
            "Authentication failed for %s %s: %s",
            request.method,
            request.url.path,
            exc.error_code,
        )
        return auth_error_response(exc)

    @app.exception_handler(DatabaseUnavailableError)
    async def handle_database_error(
        request: Request, exc: DatabaseUnavailableError
    ) -> JSONResponse:
        return database_error_response(exc, request.app.state.settings)
