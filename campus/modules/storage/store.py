"""
Credential store contract and its adapters.

The session manager only relies on the ``CredentialStore`` protocol. Values are
opaque strings (serialized session bundles); no atomicity across keys is
assumed by callers.
"""

import logging
from typing import Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class CredentialStore(Protocol):
    """Protocol for persisted credential storage."""

    async def list_keys(self) -> List[str]:
        """Return every key currently held by the store."""
        ...

    async def get(self, key: str) -> Optional[str]:
        """Return the raw value for ``key`` or None."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""
        ...

    async def remove(self, key: str) -> None:
        """Delete a single key (no-op if missing)."""
        ...

    async def remove_all(self) -> None:
        """Delete every key held by the store."""
        ...


class InMemoryCredentialStore:
    """Dict-backed store, scoped to one process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def list_keys(self) -> List[str]:
        return list(self._data.keys())

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def remove_all(self) -> None:
        count = len(self._data)
        self._data.clear()
        logger.info(f"Cleared {count} credential entries from memory store")


class RedisCredentialStore:
    """
    Redis-backed credential store.

    Every key lives under ``prefix`` so that ``remove_all()`` only touches this
    store's namespace, never the rest of the database.
    """

    def __init__(self, redis_client, prefix: str = "campus:credentials:"):
        """
        Initialize the store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            prefix: Namespace prepended to every key
        """
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def list_keys(self) -> List[str]:
        try:
            keys = await self.redis.keys(f"{self.prefix}*")
            decoded = [key.decode("utf-8") if isinstance(key, bytes) else key for key in keys]
        except Exception as e:
            raise CredentialStoreError(f"Failed to list credential keys: {e}") from e
        return [key[len(self.prefix):] for key in decoded]

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis.get(self._key(key))
            if isinstance(value, bytes):
                value = value.decode("utf-8")
        except Exception as e:
            raise CredentialStoreError(f"Failed to read credential {key}: {e}") from e
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self.redis.set(self._key(key), value)
        except Exception as e:
            raise CredentialStoreError(f"Failed to write credential {key}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            await self.redis.delete(self._key(key))
        except Exception as e:
            raise CredentialStoreError(f"Failed to delete credential {key}: {e}") from e

    async def remove_all(self) -> None:
        try:
            keys = await self.redis.keys(f"{self.prefix}*")
            if keys:
                await self.redis.delete(*keys)
        except Exception as e:
            raise CredentialStoreError(f"Failed to clear credential store: {e}") from e

        logger.info(f"Cleared {len(keys)} credential entries under {self.prefix}")
