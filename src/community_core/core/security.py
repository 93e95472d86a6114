# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Bearer-token verification with a short-lived result cache.

``TokenVerifier.authenticate`` turns an ``Authorization`` header into an
``AuthenticatedUser`` or raises one of the ``AuthError`` subclasses. A token
verified in the last ``ttl`` seconds is accepted from the cache without
cryptographic verification, so a token revoked elsewhere stays usable for up
to that long.
"""

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from beartype import beartype
from pydantic import ValidationError

from ..schemas.auth import AuthenticatedUser, JWTSelfTest, TokenInspection
from .config import Settings
from .exceptions import (
    AuthError,
    ConfigError,
    InvalidFormatError,
    NoTokenError,
    TokenExpiredError,
    TokenInvalidError,
)
from .logging_utils import get_logger, token_snippet
from .token_cache import ExpiredTokenCache, VerificationCache, token_cache_key

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def _read_expiry(token: str) -> datetime | None:
    """Read the exp claim without verifying the signature."""
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
        exp = claims.get("exp")
        if exp is None:
            return None
        return datetime.fromtimestamp(int(exp), tz=timezone.utc)
    except (jwt.InvalidTokenError, TypeError, ValueError, OverflowError):
        return None


def _identity_from(payload: dict[str, Any]) -> AuthenticatedUser:
    user = payload.get("user")
    if not isinstance(user, dict) or user.get("id") in (None, ""):
        raise TokenInvalidError("Token payload has no user id")
    try:
        return AuthenticatedUser(id=str(user["id"]))
    except ValidationError as exc:
        raise TokenInvalidError("Token payload has an invalid user id") from exc


class TokenVerifier:
    """Validate bearer credentials against the shared JWT secret."""

    def __init__(
        self,
        secret: str | None,
        *,
        algorithm: str = "HS256",
        expiration: timedelta = timedelta(hours=1),
        cache: VerificationCache | None = None,
        expired_cache: ExpiredTokenCache | None = None,
        log_interval_seconds: float = 10.0,
        debug_logging: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the verifier.

        Args:
            secret: JWT signing secret; ``None`` makes every request fail
                with ``ConfigError``
            algorithm: JWT algorithm
            expiration: Lifetime of tokens issued by ``create_access_token``
            cache: Verification cache (30s TTL by default)
            expired_cache: Known-expired token cache
            log_interval_seconds: Minimum gap between "verified" log lines
                for the same token
            debug_logging: Log token prefixes (never enable in production)
            clock: Monotonic clock in seconds, used for cache ages
        """
        self._secret = secret
        self._algorithm = algorithm
        self._expiration = expiration
        self._cache = cache if cache is not None else VerificationCache()
        self._expired_cache = (
            expired_cache if expired_cache is not None else ExpiredTokenCache()
        )
        self._log_interval = log_interval_seconds
        self._debug_logging = debug_logging
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, *, clock: Callable[[], float] = time.monotonic
    ) -> "TokenVerifier":
        """Build a verifier from application settings."""
        return cls(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expiration=timedelta(minutes=settings.jwt_expiration_minutes),
            cache=VerificationCache(
                ttl_seconds=settings.auth_cache_ttl_seconds,
                prune_threshold=settings.auth_cache_prune_threshold,
            ),
            expired_cache=ExpiredTokenCache(
                ttl_seconds=settings.auth_expired_cache_ttl_seconds,
                prune_threshold=settings.auth_expired_cache_prune_threshold,
            ),
            log_interval_seconds=settings.auth_log_interval_seconds,
            debug_logging=not settings.is_production,
            clock=clock,
        )

    @property
    def is_configured(self) -> bool:
        """Check if a verification secret is configured."""
        return bool(self._secret)

    @property
    def cache(self) -> VerificationCache:
        return self._cache

    @property
    def expired_cache(self) -> ExpiredTokenCache:
        return self._expired_cache

    @staticmethod
    @beartype
    def extract_token(authorization: str | None) -> str:
        """Pull the token out of an ``Authorization`` header value.

        Raises:
            NoTokenError: Header missing, or nothing after the scheme
            InvalidFormatError: Header does not use the Bearer scheme
        """
        if not authorization:
            raise NoTokenError()
        if authorization.strip() == BEARER_PREFIX.strip():
            raise NoTokenError()
        if not authorization.startswith(BEARER_PREFIX):
            raise InvalidFormatError()

        token = authorization[len(BEARER_PREFIX) :].strip()
        if not token:
            raise NoTokenError()
        return token

    @beartype
    def authenticate(self, authorization: str | None) -> AuthenticatedUser:
        """Authenticate a request from its ``Authorization`` header.

        Args:
            authorization: Raw header value, or None when absent

        Returns:
            AuthenticatedUser: Identity decoded from the token (possibly cached)

        Raises:
            NoTokenError, InvalidFormatError: Malformed or missing header
            ConfigError: No verification secret configured
            TokenExpiredError: Token past its expiry
            TokenInvalidError: Signature or format failure
        """
        token = self.extract_token(authorization)
        self._require_secret()

        if self._debug_logging:
            logger.debug("Token first 10 chars: %s", token_snippet(token))

        key = token_cache_key(token)
        now = self._clock()

        expired = self._expired_cache.get(key)
        if expired is not None:
            raise TokenExpiredError(expired.expired_at)

        cached = self._cache.get(key)
        if cached is not None and self._cache.is_fresh(cached, now):
            return cached.user

        try:
            inspection = self._verify(token)
        except TokenExpiredError as exc:
            self._expired_cache.add(key, exc.expired_at, now)
            logger.info("Token expired at %s", exc.expired_at)
            raise

        user = inspection.user
        if cached is None or now - cached.log_timestamp > self._log_interval:
            logger.info("Token verified for user ID: %s", user.id)
            log_timestamp = now
        else:
            log_timestamp = cached.log_timestamp

        self._cache.store(key, user, now, log_timestamp)
        return user

    @beartype
    def authenticate_optional(self, authorization: str | None) -> AuthenticatedUser | None:
        """Return the identity if a valid bearer token is present, else None."""
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return None

        token = authorization[len(BEARER_PREFIX) :].strip()
        if not token:
            return None

        try:
            return self.decode(token).user
        except AuthError as exc:
            logger.info(
                "Invalid token in optional auth, continuing without user info: %s",
                exc.message,
            )
            return None

    @beartype
    def decode(self, token: str) -> TokenInspection:
        """Verify ``token`` without consulting or updating any cache."""
        self._require_secret()
        return self._verify(token)

    @beartype
    def inspect_token(self, token: str) -> TokenInspection:
        """Verify a token submitted in a request body.

        Known-expired tokens are answered from the expired cache; a newly
        expired token is recorded there.
        """
        self._require_secret()
        key = token_cache_key(token)

        expired = self._expired_cache.get(key)
        if expired is not None:
            raise TokenExpiredError(
                expired.expired_at, "Token has expired (cached response)"
            )

        try:
            return self._verify(token)
        except TokenExpiredError as exc:
            self._expired_cache.add(key, exc.expired_at, self._clock())
            logger.info("Token verified as expired at %s", exc.expired_at)
            raise

    @beartype
    def invalidate(self, token: str) -> bool:
        """Forget the cached verification of ``token``.

        The next request carrying it is verified again. This does not revoke
        the token itself.
        """
        return self._cache.discard(token_cache_key(token))

    @beartype
    def create_access_token(
        self, user_id: str, expires_in: timedelta | None = None
    ) -> str:
        """Sign a token carrying ``{"user": {"id": user_id}}``."""
        self._require_secret()
        now = datetime.now(timezone.utc)
        payload = {
            "user": {"id": user_id},
            "iat": now,
            "exp": now + (expires_in if expires_in is not None else self._expiration),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    @beartype
    def self_test(self) -> JWTSelfTest:
        """Sign and verify a throwaway token with the configured secret."""
        if not self._secret:
            return JWTSelfTest(success=False, error="JWT_SECRET not configured")

        try:
            now = datetime.now(timezone.utc)
            token = jwt.encode(
                {"test": "data", "exp": now + timedelta(minutes=5)},
                self._secret,
                algorithm=self._algorithm,
            )
            jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            return JWTSelfTest(success=False, error=str(exc))
        return JWTSelfTest(success=True)

    def _require_secret(self) -> None:
        if not self._secret:
            logger.error("JWT_SECRET is not configured in environment variables!")
            raise ConfigError()

    def _verify(self, token: str) -> TokenInspection:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError(_read_expiry(token)) from None
        except jwt.InvalidTokenError as exc:
            if self._debug_logging:
                logger.error(
                    "JWT verification error: %s (token %s)", exc, token_snippet(token)
                )
            else:
                logger.error("JWT verification error: %s", exc)
            raise TokenInvalidError(str(exc)) from exc

        exp = payload.get("exp")
        return TokenInspection(
            user=_identity_from(payload),
            expires_at=(
                datetime.fromtimestamp(int(exp), tz=timezone.utc)
                if exp is not None
                else None
            ),
        )
