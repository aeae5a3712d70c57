"""
Token Store: the current bearer credential and its durable copy.

The in-memory value and the durable copy move together: `save` writes
both, `clear` removes both. A storage fault on save or clear is logged and
does not prevent the in-memory change, so a logout always takes effect for
the running process.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from resilient_data_client.tokens.storage import KeyValueStorage

logger = logging.getLogger(__name__)

TOKEN_STORAGE_KEY = "auth_token"


class TokenSource(str, Enum):
    """Where the current token came from."""
    MEMORY = "memory"
    PERSISTED_STORAGE = "persisted-storage"


@dataclass(frozen=True)
class AuthToken:
    value: str
    source: TokenSource


class TokenStore:
    """
    Holds the bearer token for authenticated requests.

    Example:
        store = TokenStore(FileStorage(path))
        await store.load()
        headers = store.authorization_header(requires_auth=True)
    """

    def __init__(self, storage: KeyValueStorage, key: str = TOKEN_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._token: Optional[AuthToken] = None

    @property
    def value(self) -> Optional[str]:
        return self._token.value if self._token else None

    @property
    def source(self) -> Optional[TokenSource]:
        return self._token.source if self._token else None

    def is_present(self) -> bool:
        return self._token is not None

    async def load(self) -> None:
        """Populate memory from durable storage."""
        try:
            stored = await self.storage.get(self.key)
        except Exception as e:
            logger.warning(
                "Failed to load persisted token",
                extra={"extra_data": {"key": self.key, "error": str(e)}}
            )
            return
        if stored:
            self._token = AuthToken(value=stored, source=TokenSource.PERSISTED_STORAGE)
            logger.debug("Loaded persisted token", extra={"extra_data": {"key": self.key}})

    async def save(self, token: str) -> None:
        """Set the token in memory and write it to durable storage."""
        self._token = AuthToken(value=token, source=TokenSource.MEMORY)
        try:
            await self.storage.set(self.key, token)
        except Exception as e:
            logger.error(
                "Failed to persist token",
                extra={"extra_data": {"key": self.key, "error": str(e)}}
            )

    async def clear(self) -> None:
        """Remove the token from memory and from durable storage."""
        self._token = None
        try:
            await self.storage.delete(self.key)
        except Exception as e:
            logger.error(
                "Failed to remove persisted token",
                extra={"extra_data": {"key": self.key, "error": str(e)}}
            )

    def authorization_header(self, requires_auth: bool) -> dict[str, str]:
        """
        Build the Authorization header for a request.

        Public requests never carry the token. Authenticated requests carry
        it when present and go out without it otherwise, leaving rejection
        to the server.
        """
        if not requires_auth or self._token is None:
            return {}
        return {"Authorization": f"Bearer {self._token.value}"}
