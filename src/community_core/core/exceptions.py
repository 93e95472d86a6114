# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Error taxonomy for authentication and database availability.

Every expected failure carries a stable, machine-readable ``error_code`` so
clients can branch without matching on message text (redirect to login on
``TokenExpired``, show a generic error on ``ConfigError``, and so on).
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from .database import ConnectionStateSnapshot


class AuthError(Exception):
    """Base class for bearer-token authentication failures."""

    error_code: ClassVar[str] = "AuthError"
    status_code: ClassVar[int] = 401
    default_message: ClassVar[str] = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def details(self) -> dict[str, Any] | None:
        """Extra machine-readable context for the error response."""
        return None


class NoTokenError(AuthError):
    """No Authorization header, or an empty token after the scheme prefix."""

    error_code = "NoToken"
    default_message = "No token, authorization denied"


class InvalidFormatError(AuthError):
    """Authorization header does not use the Bearer scheme."""

    error_code = "InvalidFormat"
    default_message = "Invalid token format"


class ConfigError(AuthError):
    """Verification secret is not configured (server-side misconfiguration)."""

    error_code = "ConfigError"
    status_code = 500
    default_message = "Server configuration error: JWT secret missing"


class TokenExpiredError(AuthError):
    """Token signature is valid but its ``exp`` claim has passed."""

    error_code = "TokenExpired"
    default_message = "Token has expired"

    def __init__(self, expired_at: datetime | None, message: str | None = None) -> None:
        super().__init__(message)
        self.expired_at = expired_at

    def details(self) -> dict[str, Any] | None:
        return {
            "expired_at": self.expired_at.isoformat() if self.expired_at else None,
        }


class TokenInvalidError(AuthError):
    """Signature or format failure reported by the verification library."""

    error_code = "TokenInvalid"
    default_message = "Token is invalid - signature verification failed"

    def __init__(self, reason: str | None = None, message: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason

    def details(self) -> dict[str, Any] | None:
        if self.reason is None:
            return None
        return {"reason": self.reason}


class DatabaseUnavailableError(Exception):
    """Raised by the request gate when no database connection can be made."""

    error_code: ClassVar[str] = "DB_CONNECTION_ERROR"
    status_code: ClassVar[int] = 500

    def __init__(
        self,
        cause: BaseException,
        snapshot: "ConnectionStateSnapshot",
    ) -> None:
        super().__init__("Database connection is currently unavailable")
        self.cause = cause
        self.snapshot = snapshot
