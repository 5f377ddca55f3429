"""
Storage Module - Black Box Interface

Purpose: Persist serialized session bundles between process starts
Interface: list_keys(), get(), set(), remove(), remove_all()
Hidden: Redis specifics, connection handling, key namespacing

Can be replaced with any key/value backend without affecting other modules.
"""

import os
from typing import Optional

import redis.asyncio as redis

from .store import (
    CredentialStore,
    CredentialStoreError,
    InMemoryCredentialStore,
    RedisCredentialStore,
)


class StorageModule:
    """Owns the Redis connection backing the credential store."""

    def __init__(self, connection_url: Optional[str] = None):
        """Initialize storage with connection URL."""
        self.url = connection_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._client = None

    async def connect(self) -> redis.Redis:
        """Get storage connection."""
        if not self._client:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    async def disconnect(self):
        """Close storage connection."""
        if self._client:
            await self._client.close()
            self._client = None


__all__ = [
    "CredentialStore",
    "CredentialStoreError",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
    "StorageModule",
]
