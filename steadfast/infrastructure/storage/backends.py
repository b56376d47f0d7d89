"""Concrete single-slot backends for the state snapshot.

- RedisStateBackend: networked key-value service.
- DiskStateBackend: embedded on-disk store (diskcache, SQLite underneath).
- FileStateBackend: one flat JSON file, written atomically.
"""

import asyncio
import logging
import os
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional

import aiofiles
import diskcache as dc
from redis.asyncio import Redis

from steadfast.domain.interfaces.storage import StateBackend

logger = logging.getLogger(__name__)

REDIS_STATE_KEY = "steadfast:state"
DISK_STATE_KEY = "state"


class RedisStateBackend(StateBackend):
    """Keeps the payload under one Redis key."""

    name = "redis"

    def __init__(self, client: Redis, key: str = REDIS_STATE_KEY):
        self.client = client
        self.key = key

    async def save(self, payload: str) -> None:
        await self.client.set(self.key, payload)

    async def load(self) -> Optional[str]:
        return await self.client.get(self.key)

    async def close(self) -> None:
        await self.client.aclose()


class DiskStateBackend(StateBackend):
    """Keeps the payload in a diskcache directory.

    diskcache is synchronous and holds one SQLite connection per thread.
    Every call, including open and close, runs on a single dedicated worker
    thread so the event loop is not blocked and close() releases the only
    connection.
    """

    name = "diskcache"

    def __init__(self, cache: dc.Cache, executor: ThreadPoolExecutor):
        self.cache = cache
        self._executor = executor

    @classmethod
    async def open(cls, directory: Path) -> "DiskStateBackend":
        """Opens (creating if needed) the store at directory.

        Raises:
            OSError, sqlite3.Error: The directory is not usable.
        """
        directory.mkdir(parents=True, exist_ok=True)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="steadfast-diskcache")
        try:
            cache = await asyncio.get_running_loop().run_in_executor(executor, dc.Cache, str(directory))
        except BaseException:
            executor.shutdown(wait=False)
            raise
        logger.info(f"Embedded state store opened at: {cache.directory}")
        return cls(cache, executor)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.get_running_loop().run_in_executor(self._executor, func, *args)

    async def save(self, payload: str) -> None:
        await self._run(self.cache.set, DISK_STATE_KEY, payload)

    async def load(self) -> Optional[str]:
        return await self._run(self.cache.get, DISK_STATE_KEY)

    async def close(self) -> None:
        try:
            await self._run(self.cache.close)
        finally:
            self._executor.shutdown(wait=True)


class FileStateBackend(StateBackend):
    """Keeps the payload in a single JSON file."""

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)

    async def save(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Each write gets its own temp file; os.replace swaps in a complete document
        temp_path = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(temp_path, mode='w', encoding='utf-8') as f:
                await f.write(payload)
            os.replace(temp_path, self.path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    async def load(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        async with aiofiles.open(self.path, mode='r', encoding='utf-8') as f:
            return await f.read()

    async def close(self) -> None:
        pass
