"""
Token management for authenticated requests.

This module provides the Token Store and the durable key/value storages it
persists the bearer token to (memory, JSON file, or Redis).
"""

from resilient_data_client.tokens.storage import InMemoryStorage, KeyValueStorage
from resilient_data_client.tokens.file_store import FileStorage
from resilient_data_client.tokens.redis_store import RedisStorage
from resilient_data_client.tokens.token_store import TOKEN_STORAGE_KEY, AuthToken, TokenSource, TokenStore

__all__ = [
    "KeyValueStorage",
    "InMemoryStorage",
    "FileStorage",
    "RedisStorage",
    "TOKEN_STORAGE_KEY",
    "AuthToken",
    "TokenSource",
    "TokenStore",
]
