"""
Unit tests for token storage and the Token Store.

Tests cover:
- InMemoryStorage, FileStorage and RedisStorage key/value semantics
- TokenStore load/save/clear and the in-memory value
- storage faults never block an in-memory change
- FileStorage writes are serialized in call order
- Authorization header attachment rules
"""

import asyncio
import json
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from resilient_data_client.tokens.file_store import FileStorage
from resilient_data_client.tokens.redis_store import KEY_PREFIX, RedisStorage
from resilient_data_client.tokens.storage import InMemoryStorage, KeyValueStorage
from resilient_data_client.tokens.token_store import TOKEN_STORAGE_KEY, TokenSource, TokenStore


class BrokenStorage(KeyValueStorage):
    """Storage whose every operation fails."""

    async def get(self, key):
        raise OSError("disk unavailable")

    async def set(self, key, value):
        raise OSError("disk unavailable")

    async def delete(self, key):
        raise OSError("disk unavailable")

    async def health_check(self):
        return False


class SlowWriteFileStorage(FileStorage):
    """FileStorage whose writes take long enough for a later call to overtake them."""

    def _set_sync(self, key, value):
        time.sleep(0.05)
        super()._set_sync(key, value)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client for unit tests."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    return mock


class TestInMemoryStorage:
    """Tests for InMemoryStorage."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        storage = InMemoryStorage()

        await storage.set("auth_token", "abc")
        assert await storage.get("auth_token") == "abc"

        await storage.delete("auth_token")
        assert await storage.get("auth_token") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self):
        storage = InMemoryStorage()

        await storage.delete("missing")

        assert await storage.health_check() is True


class TestFileStorage:
    """Tests for FileStorage."""

    @pytest.mark.asyncio
    async def test_values_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "config" / "tokens.json"

        await FileStorage(path).set("auth_token", "abc")

        assert await FileStorage(path).get("auth_token") == "abc"
        assert json.loads(path.read_text()) == {"auth_token": "abc"}

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, tmp_path):
        storage = FileStorage(tmp_path / "tokens.json")
        await storage.set("auth_token", "abc")
        await storage.set("other", "keep")

        await storage.delete("auth_token")

        assert await storage.get("auth_token") is None
        assert await storage.get("other") == "keep"

    @pytest.mark.asyncio
    async def test_missing_file_reads_as_empty(self, tmp_path):
        assert await FileStorage(tmp_path / "absent.json").get("auth_token") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text("{not json")

        assert await FileStorage(path).get("auth_token") is None

    @pytest.mark.asyncio
    async def test_health_check(self, tmp_path):
        assert await FileStorage(tmp_path / "tokens.json").health_check() is True

    @pytest.mark.asyncio
    async def test_concurrent_save_and_clear_leave_no_token_behind(self, tmp_path):
        """A clear issued after a save must win on disk as it does in memory."""
        storage = SlowWriteFileStorage(tmp_path / "tokens.json")
        store = TokenStore(storage)

        await asyncio.gather(store.save("abc"), store.clear())

        assert store.value is None
        assert await storage.get(TOKEN_STORAGE_KEY) is None

    @pytest.mark.asyncio
    async def test_writes_apply_in_call_order(self, tmp_path):
        storage = SlowWriteFileStorage(tmp_path / "tokens.json")

        await asyncio.gather(
            storage.set("auth_token", "first"),
            storage.delete("auth_token"),
            storage.set("auth_token", "last"),
        )

        assert await storage.get("auth_token") == "last"


class TestRedisStorage:
    """Tests for RedisStorage with a mocked client."""

    @pytest.mark.asyncio
    async def test_keys_are_prefixed(self, mock_redis):
        storage = RedisStorage("redis://localhost:6379/0")
        storage.client = mock_redis

        await storage.set("auth_token", "abc")
        await storage.get("auth_token")
        await storage.delete("auth_token")

        mock_redis.set.assert_awaited_once_with(f"{KEY_PREFIX}auth_token", "abc")
        mock_redis.get.assert_awaited_once_with(f"{KEY_PREFIX}auth_token")
        mock_redis.delete.assert_awaited_once_with(f"{KEY_PREFIX}auth_token")

    @pytest.mark.asyncio
    async def test_operations_require_connection(self):
        storage = RedisStorage("redis://localhost:6379/0")

        with pytest.raises(RuntimeError):
            await storage.get("auth_token")

    @pytest.mark.asyncio
    async def test_health_check_uses_ping(self, mock_redis):
        storage = RedisStorage("redis://localhost:6379/0")
        assert await storage.health_check() is False

        storage.client = mock_redis
        assert await storage.health_check() is True

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self, mock_redis):
        storage = RedisStorage("redis://localhost:6379/0")
        storage.client = mock_redis

        await storage.disconnect()

        mock_redis.aclose.assert_awaited_once()
        assert storage.client is None


class TestTokenStore:
    """Tests for TokenStore."""

    @pytest.mark.asyncio
    async def test_starts_empty(self):
        store = TokenStore(InMemoryStorage())

        assert store.is_present() is False
        assert store.value is None
        assert store.source is None

    @pytest.mark.asyncio
    async def test_load_reads_persisted_token(self):
        store = TokenStore(InMemoryStorage({TOKEN_STORAGE_KEY: "persisted"}))

        await store.load()

        assert store.value == "persisted"
        assert store.source == TokenSource.PERSISTED_STORAGE

    @pytest.mark.asyncio
    async def test_save_updates_memory_and_storage(self):
        storage = InMemoryStorage()
        store = TokenStore(storage)

        await store.save("fresh")

        assert store.value == "fresh"
        assert store.source == TokenSource.MEMORY
        assert await storage.get(TOKEN_STORAGE_KEY) == "fresh"

    @pytest.mark.asyncio
    async def test_clear_removes_memory_and_storage(self):
        storage = InMemoryStorage()
        store = TokenStore(storage)
        await store.save("fresh")

        await store.clear()

        assert store.is_present() is False
        assert await storage.get(TOKEN_STORAGE_KEY) is None

    @pytest.mark.asyncio
    async def test_storage_faults_do_not_block_memory_changes(self):
        store = TokenStore(BrokenStorage())

        await store.load()
        assert store.is_present() is False

        await store.save("fresh")
        assert store.value == "fresh"

        await store.clear()
        assert store.is_present() is False

    @pytest.mark.asyncio
    async def test_authorization_header_rules(self):
        store = TokenStore(InMemoryStorage())

        assert store.authorization_header(requires_auth=True) == {}

        await store.save("abc")

        assert store.authorization_header(requires_auth=True) == {"Authorization": "Bearer abc"}
        assert store.authorization_header(requires_auth=False) == {}
