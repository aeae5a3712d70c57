"""
Redis-based storage for the auth token.

This module provides a Redis-backed implementation of KeyValueStorage so
that several client processes on one host (or a fleet sharing a service
account) can share a persisted credential.
"""

from typing import Optional

from resilient_data_client.tokens.storage import KeyValueStorage

# Namespace for keys written by the client
KEY_PREFIX = "data-client:"


class RedisStorage(KeyValueStorage):
    """
    Redis-backed key/value storage.

    Attributes:
        redis_url: Redis connection URL (e.g., "redis://localhost:6379")
        client: Redis async client instance (initialized via connect())
    """

    def __init__(self, redis_url: str):
        """
        Initialize the Redis storage.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self.client = None

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        This method must be called before using any other methods.
        """
        import redis.asyncio as redis
        self.client = redis.from_url(self.redis_url, decode_responses=True)

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def _get_key(self, key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def _require_client(self):
        if not self.client:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self.client

    async def get(self, key: str) -> Optional[str]:
        client = self._require_client()
        return await client.get(self._get_key(key))

    async def set(self, key: str, value: str) -> None:
        client = self._require_client()
        await client.set(self._get_key(key), value)

    async def delete(self, key: str) -> None:
        client = self._require_client()
        await client.delete(self._get_key(key))

    async def health_check(self) -> bool:
        """
        Check connectivity with a PING.

        Note:
            This method does not raise exceptions - connectivity issues
            are caught and result in a False return value.
        """
        if not self.client:
            return False

        try:
            result = await self.client.ping()
            return result is True
        except Exception:
            return False
