# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""In-memory caches of recent token verification outcomes.

Both caches are keyed by a digest of the trailing slice of the token, never
by the token itself. They are plain dicts touched only from the event loop,
and are pruned lazily on every write once they grow past a threshold.
"""

import hashlib
from datetime import datetime

from attrs import define, field, frozen
from beartype import beartype

from ..schemas.auth import AuthenticatedUser

TOKEN_KEY_SUFFIX_LENGTH = 20


@beartype
def token_cache_key(token: str) -> str:
    """Derive the cache key for a token from its last 20 characters."""
    suffix = token[-TOKEN_KEY_SUFFIX_LENGTH:]
    return hashlib.sha256(suffix.encode("utf-8")).hexdigest()


@define
class VerificationCacheEntry:
    """Last successful verification of a token."""

    user: AuthenticatedUser = field()
    timestamp: float = field()
    log_timestamp: float = field()


@frozen
class ExpiredTokenEntry:
    """A token already seen to be past its expiry."""

    timestamp: float = field()
    expired_at: datetime | None = field()


class VerificationCache:
    """TTL cache of decoded identities for recently verified tokens."""

    def __init__(self, ttl_seconds: float = 30.0, prune_threshold: int = 100) -> None:
        self.ttl_seconds = ttl_seconds
        self.prune_threshold = prune_threshold
        self._entries: dict[str, VerificationCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> VerificationCacheEntry | None:
        """Return the entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def is_fresh(self, entry: VerificationCacheEntry, now: float) -> bool:
        """Check whether an entry is young enough to skip verification."""
        return now - entry.timestamp < self.ttl_seconds

    def get_fresh(self, key: str, now: float) -> VerificationCacheEntry | None:
        """Return the entry for ``key`` only if it is within the TTL."""
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry, now):
            return entry
        return None

    def store(
        self, key: str, user: AuthenticatedUser, now: float, log_timestamp: float
    ) -> VerificationCacheEntry:
        """Insert or refresh the entry for ``key``."""
        if len(self._entries) > self.prune_threshold:
            self.prune(now)
        entry = VerificationCacheEntry(user=user, timestamp=now, log_timestamp=log_timestamp)
        self._entries[key] = entry
        return entry

    def prune(self, now: float) -> int:
        """Delete entries older than the TTL and return how many went."""
        stale = [
            key
            for key, entry in self._entries.items()
            if now - entry.timestamp > self.ttl_seconds
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def discard(self, key: str) -> bool:
        """Remove the entry for ``key`` if present."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()


class ExpiredTokenCache:
    """Remembers expired tokens so they are rejected without re-verification."""

    def __init__(self, ttl_seconds: float = 300.0, prune_threshold: int = 500) -> None:
        self.ttl_seconds = ttl_seconds
        self.prune_threshold = prune_threshold
        self._entries: dict[str, ExpiredTokenEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> ExpiredTokenEntry | None:
        return self._entries.get(key)

    def add(self, key: str, expired_at: datetime | None, now: float) -> ExpiredTokenEntry:
        """Record ``key`` as expired, pruning old entries past the threshold."""
        if len(self._entries) > self.prune_threshold:
            self.prune(now)
        entry = ExpiredTokenEntry(timestamp=now, expired_at=expired_at)
        self._entries[key] = entry
        return entry

    def prune(self, now: float) -> int:
        """Delete entries recorded more than the TTL ago."""
        stale = [
            key
            for key, entry in self._entries.items()
            if now - entry.timestamp > self.ttl_seconds
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
