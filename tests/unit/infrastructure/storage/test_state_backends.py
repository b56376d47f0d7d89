import asyncio
import json
import os
from pathlib import Path

import pytest

from steadfast.infrastructure.storage.backends import (
    DiskStateBackend, FileStateBackend, RedisStateBackend,
)


def open_descriptors_under(directory: Path) -> list:
    """Lists this process's open file descriptors pointing inside directory."""
    fd_dir = Path("/proc/self/fd")
    paths = []
    for entry in fd_dir.iterdir():
        try:
            target = os.readlink(entry)
        except OSError:
            continue
        if target.startswith(str(directory.resolve())):
            paths.append(target)
    return paths


async def test_file_backend_missing_file_loads_none(tmp_path):
    """A state file that was never written loads as None."""
    backend = FileStateBackend(tmp_path / "nested" / "state.json")
    assert await backend.load() is None


async def test_file_backend_creates_parent_and_leaves_no_temp_file(tmp_path):
    """Saving creates the directory and replaces the file without leftovers."""
    path = tmp_path / "nested" / "state.json"
    backend = FileStateBackend(path)

    await backend.save('{"a": 1}')

    assert path.read_text(encoding="utf-8") == '{"a": 1}'
    assert list(path.parent.iterdir()) == [path]
    assert await backend.load() == '{"a": 1}'


async def test_file_backend_overlapping_saves_never_mix(tmp_path):
    """Overlapping saves each use their own temp file, so one whole document wins."""
    path = tmp_path / "state.json"
    backend = FileStateBackend(path)
    large = json.dumps({"blob": "x" * 200_000})
    small = json.dumps({"a": 1})

    await asyncio.gather(backend.save(large), backend.save(small))

    assert path.read_text(encoding="utf-8") in (large, small)
    assert list(tmp_path.iterdir()) == [path]


async def test_disk_backend_persists_across_reopen(tmp_path):
    """A value saved before close is loaded by a new backend on the same directory."""
    backend = await DiskStateBackend.open(tmp_path / "state_db")
    await backend.save('{"x": 1}')
    await backend.close()

    reopened = await DiskStateBackend.open(tmp_path / "state_db")
    assert await reopened.load() == '{"x": 1}'
    await reopened.close()


async def test_disk_backend_empty_store_loads_none(tmp_path):
    """A fresh embedded store has no state."""
    backend = await DiskStateBackend.open(tmp_path / "state_db")
    assert await backend.load() is None
    await backend.close()


@pytest.mark.skipif(not Path("/proc/self/fd").is_dir(), reason="needs /proc/self/fd")
async def test_disk_backend_close_releases_every_connection(tmp_path):
    """No SQLite file stays open once the backend is closed."""
    directory = tmp_path / "state_db"
    backend = await DiskStateBackend.open(directory)
    for round_number in range(5):
        await backend.save(json.dumps({"round": round_number}))
        assert await backend.load() == json.dumps({"round": round_number})
    assert open_descriptors_under(directory)

    await backend.close()

    assert open_descriptors_under(directory) == []


async def test_redis_backend_uses_single_key(mock_redis_client):
    """The whole document lives under the configured key."""
    backend = RedisStateBackend(mock_redis_client, key="app:state")
    await backend.save('{"y": 2}')
    assert mock_redis_client.data == {"app:state": '{"y": 2}'}
    assert await backend.load() == '{"y": 2}'
    await backend.close()
    mock_redis_client.aclose.assert_awaited_once()
