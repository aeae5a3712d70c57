"""
Process-wide mutable state for the data-access client.

The request cache, the token cell and the backend flag are owned by one
explicitly constructed ClientContext and injected into the Facade, so a
process gets single-instance semantics without module-level singletons and
tests can build as many isolated contexts as they need.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from resilient_data_client.backends.target import BackendSelector
from resilient_data_client.cache.request_cache import RequestCache
from resilient_data_client.config.settings import ClientSettings, Environment
from resilient_data_client.tokens.file_store import FileStorage
from resilient_data_client.tokens.redis_store import RedisStorage
from resilient_data_client.tokens.storage import InMemoryStorage, KeyValueStorage
from resilient_data_client.tokens.token_store import TokenStore

logger = logging.getLogger(__name__)


def create_token_storage(settings: ClientSettings) -> KeyValueStorage:
    """
    Create the durable token storage selected by settings.

    Development falls back to in-memory storage when Redis is selected
    without a URL.

    Args:
        settings: Client settings

    Returns:
        An unconnected KeyValueStorage
    """
    storage_type = settings.token_storage_type
    if storage_type == "redis":
        if settings.redis_url:
            return RedisStorage(settings.redis_url)
        if settings.environment == Environment.DEVELOPMENT:
            logger.warning(
                "Redis token storage selected without REDIS_URL, using in-memory storage",
                extra={"extra_data": {"environment": settings.environment.value}}
            )
            return InMemoryStorage()
    if storage_type == "file":
        return FileStorage(settings.token_storage_path)
    return InMemoryStorage()


@dataclass
class ClientContext:
    """
    Shared state owned by one Facade.

    Attributes:
        cache: Request cache for successful reads
        token_store: Bearer token cell and its durable copy
        selector: Process-wide backend flag
    """
    cache: RequestCache
    token_store: TokenStore
    selector: BackendSelector

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        *,
        storage: Optional[KeyValueStorage] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "ClientContext":
        """
        Build a context from settings.

        Args:
            settings: Client settings
            storage: Optional token storage override
            clock: Optional monotonic clock for the cache

        Returns:
            A new ClientContext
        """
        cache = (
            RequestCache(settings.cache_ttl_seconds, clock=clock)
            if clock is not None
            else RequestCache(settings.cache_ttl_seconds)
        )
        return cls(
            cache=cache,
            token_store=TokenStore(storage or create_token_storage(settings)),
            selector=BackendSelector(use_secondary=settings.secondary_by_default),
        )
