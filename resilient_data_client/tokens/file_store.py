"""
JSON-file storage for the auth token.

Values are kept in a single JSON object on disk, by default under the
per-user configuration directory. File I/O runs in the default executor so
the event loop is never blocked; writes are read-modify-write cycles and
run one at a time, in call order.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from resilient_data_client.tokens.storage import KeyValueStorage

logger = logging.getLogger(__name__)


class FileStorage(KeyValueStorage):
    """
    File-backed key/value storage.

    Attributes:
        path: Location of the JSON file
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock: Optional[asyncio.Lock] = None

    def _write_lock(self) -> asyncio.Lock:
        # Created lazily so the lock belongs to the loop that uses it
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "Token storage file unreadable, treating as empty",
                extra={"extra_data": {"path": str(self.path), "error": str(e)}}
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write_all(self, values: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(values, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self.path)

    def _set_sync(self, key: str, value: str) -> None:
        values = self._read_all()
        values[key] = value
        self._write_all(values)

    def _delete_sync(self, key: str) -> None:
        values = self._read_all()
        if key in values:
            del values[key]
            self._write_all(values)

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def get(self, key: str) -> Optional[str]:
        values = await self._run(self._read_all)
        return values.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._write_lock():
            await self._run(self._set_sync, key, value)

    async def delete(self, key: str) -> None:
        async with self._write_lock():
            await self._run(self._delete_sync, key)

    async def health_check(self) -> bool:
        try:
            directory = self.path.parent
            return directory.is_dir() or not directory.exists()
        except OSError:
            return False
