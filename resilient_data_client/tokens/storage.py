"""
Durable key/value storage abstraction for the auth token.

The token store persists the bearer credential across process restarts
through one of these storages. Implementations may use a local JSON file,
Redis, or (for tests and ephemeral processes) plain memory.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """
    Abstract base class for durable string storage.

    All methods are async to support non-blocking I/O with external
    storage systems.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value stored under key.

        Args:
            key: Storage key.

        Returns:
            The stored string, or None if the key does not exist.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store value under key, replacing any existing value.

        Args:
            key: Storage key.
            value: String value to store.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete the value stored under key.

        This operation is idempotent - deleting a missing key does not
        raise an error.

        Args:
            key: Storage key.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check that the storage is available.

        Returns:
            True if the storage is healthy and accessible, False otherwise.

        Note:
            This method should not raise exceptions.
        """
        pass


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; values do not survive a restart."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def health_check(self) -> bool:
        return True
