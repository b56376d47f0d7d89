"""Tiered persistence for the application-state snapshot.

At init the store probes, in order, Redis (only when a connection string is
given), an embedded diskcache store, and finally a flat JSON file. The first
backend that works is used for the rest of the store's lifetime.

Persistence is best-effort: save_state and load_state never raise, so a
storage outage cannot crash or block the host application.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from steadfast.domain.interfaces.storage import StateBackend
from steadfast.domain.models.common import StateDocument
from steadfast.infrastructure.connections.redis_connection import CONNECT_RETRIES, connect_redis
from steadfast.infrastructure.storage.backends import (
    DiskStateBackend, FileStateBackend, RedisStateBackend,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("data")
DISK_STORE_DIRNAME = "state_db"
STATE_FILE_NAME = "state.json"


class TieredStore:
    """Saves and restores one JSON document through the best available backend."""

    def __init__(self, data_dir: Path = DEFAULT_DATA_DIR, redis_retries: int = CONNECT_RETRIES):
        """Initializes the store without touching any backend.

        Args:
            data_dir: Directory for the embedded store and the JSON fallback.
            redis_retries: Connection retries before giving up on Redis.
        """
        self.data_dir = Path(data_dir)
        self.redis_retries = redis_retries
        self._backend: Optional[StateBackend] = None
        # Separate locks: save_state may trigger a lazy init while holding the write lock
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def backend_name(self) -> Optional[str]:
        return self._backend.name if self._backend else None

    async def init(self, connection_string: Optional[str] = None) -> str:
        """Selects a backend. Subsequent calls keep the first selection.

        Args:
            connection_string: Redis URL; when absent Redis is not attempted.

        Returns:
            Name of the selected backend ('redis', 'diskcache' or 'file').
        """
        async with self._init_lock:
            if self._backend is None:
                self._backend = await self._select_backend(connection_string)
            return self._backend.name

    async def _select_backend(self, connection_string: Optional[str]) -> StateBackend:
        if connection_string:
            client = await connect_redis(connection_string, retries=self.redis_retries)
            if client is not None:
                logger.info("Using Redis for state persistence")
                return RedisStateBackend(client)

        try:
            backend = await DiskStateBackend.open(self.data_dir / DISK_STORE_DIRNAME)
            logger.info("Using embedded disk store for state persistence")
            return backend
        except Exception as e:
            logger.error(f"Embedded disk store not available: {e}", exc_info=True)

        file_backend = FileStateBackend(self.data_dir / STATE_FILE_NAME)
        logger.info(f"Using JSON file fallback for state persistence: {file_backend.path}")
        return file_backend

    async def _require_backend(self) -> StateBackend:
        if self._backend is None:
            logger.debug("TieredStore used before init(); selecting a local backend")
            await self.init()
        return self._backend

    async def save_state(self, snapshot: Optional[StateDocument]) -> bool:
        """Persists snapshot, replacing any previous one.

        Returns:
            True on success. Failures are logged, never raised.
        """
        try:
            async with self._write_lock:
                backend = await self._require_backend()
                payload = json.dumps(snapshot or {})
                await backend.save(payload)
            logger.debug(f"State saved via {backend.name} ({len(payload)} bytes)")
            return True
        except Exception as e:
            logger.error(f"Failed to save state: {e}", exc_info=True)
            return False

    async def load_state(self) -> StateDocument:
        """Returns the last saved snapshot, or {} if none can be read."""
        try:
            backend = await self._require_backend()
            payload = await backend.load()
            if not payload:
                return {}
            return json.loads(payload)
        except Exception as e:
            logger.error(f"Failed to load state: {e}", exc_info=True)
            return {}

    async def close(self) -> None:
        """Releases the backend handle. The store may be re-initialized afterwards."""
        async with self._write_lock:
            if self._backend is None:
                return
            try:
                await self._backend.close()
            except Exception as e:
                logger.warning(f"Error closing {self._backend.name} state backend: {e}")
            self._backend = None
