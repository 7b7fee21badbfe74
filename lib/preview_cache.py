"""
Preview/Confirm cache for two-phase operations.

Holds the row-id sets produced by a cleanup preview until the caller
confirms them. Entries expire after the configured TTL.
"""
import time
import uuid
from typing import Any, Callable


class PreviewCache:
    """
    In-memory cache for preview/confirm tokens with TTL expiry.

    Usage:
        cache = PreviewCache()

        # Preview mode: store data and get token
        token = cache.store("cleanup", {"sheet_id": "123", "row_ids": [...]})

        # Confirm mode: retrieve and remove data
        data = cache.pop("cleanup", token)
        if data is None:
            # Token expired or invalid
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize cache with TTL.

        Args:
            ttl_seconds: Time-to-live for cached entries (default 5 minutes).
            clock: Monotonic time source, injectable for tests.
        """
        self._cache: dict[str, tuple[float, dict[str, Any]]] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        """Get configured TTL in seconds."""
        return self._ttl_seconds

    @property
    def size(self) -> int:
        """Get current number of live entries."""
        self.purge_expired()
        return len(self._cache)

    def _make_key(self, prefix: str, token: str) -> str:
        return f"{prefix}:{token}"

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at > self._ttl_seconds

    def store(
        self,
        prefix: str,
        data: dict[str, Any],
        token: str | None = None,
    ) -> str:
        """
        Store data and return token.

        Args:
            prefix: Key prefix (e.g., "cleanup")
            data: Data to cache
            token: Optional custom token; generates UUID if not provided

        Returns:
            The token for later retrieval
        """
        if token is None:
            token = str(uuid.uuid4())
        self._cache[self._make_key(prefix, token)] = (self._clock(), data)
        return token

    def get(self, prefix: str, token: str) -> dict[str, Any] | None:
        """Get cached data without removing it. Expired entries read as None."""
        key = self._make_key(prefix, token)
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._expired(entry[0]):
            del self._cache[key]
            return None
        return entry[1]

    def pop(self, prefix: str, token: str) -> dict[str, Any] | None:
        """Get and remove cached data. Expired entries read as None."""
        entry = self._cache.pop(self._make_key(prefix, token), None)
        if entry is None or self._expired(entry[0]):
            return None
        return entry[1]

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        stale = [k for k, (stored_at, _) in self._cache.items() if self._expired(stored_at)]
        for k in stale:
            del self._cache[k]
        return len(stale)

    def clear_all(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed
        """
        count = len(self._cache)
        self._cache.clear()
        return count
