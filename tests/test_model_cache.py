"""Tests for the persistent model cache."""

import asyncio
from pathlib import Path

import pytest

from unpaint.errors import StorageError
from unpaint.model_cache import ModelCache


def test_get_missing_returns_none(tmp_path: Path) -> None:
    cache = ModelCache(tmp_path / "models")
    assert asyncio.run(cache.get("migan")) is None
    assert asyncio.run(cache.contains("migan")) is False


def test_put_get_delete(tmp_path: Path) -> None:
    cache = ModelCache(tmp_path / "models")

    async def scenario():
        await cache.put("migan-pipeline-v2", b"\x00\x01model")
        stored = await cache.get("migan-pipeline-v2")
        present = await cache.contains("migan-pipeline-v2")
        await cache.delete("migan-pipeline-v2")
        gone = await cache.get("migan-pipeline-v2")
        return stored, present, gone

    stored, present, gone = asyncio.run(scenario())

    assert stored == b"\x00\x01model"
    assert present is True
    assert gone is None


def test_survives_new_instance(tmp_path: Path) -> None:
    """A second cache over the same directory sees earlier writes."""
    asyncio.run(ModelCache(tmp_path).put("key", b"persisted"))
    assert asyncio.run(ModelCache(tmp_path).get("key")) == b"persisted"


def test_put_leaves_no_partial_files(tmp_path: Path) -> None:
    cache = ModelCache(tmp_path)
    asyncio.run(cache.put("key", b"abc"))
    asyncio.run(cache.put("key", b"defg"))

    assert [p.name for p in tmp_path.iterdir()] == ["key.bin"]
    assert asyncio.run(cache.get("key")) == b"defg"


def test_delete_missing_is_ok(tmp_path: Path) -> None:
    asyncio.run(ModelCache(tmp_path).delete("nothing"))


def test_unsafe_key_stays_inside_cache_dir(tmp_path: Path) -> None:
    cache = ModelCache(tmp_path)
    path = cache.path_for("../../etc/passwd")
    assert path.parent == tmp_path


def test_refuses_empty_blob(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="empty"):
        asyncio.run(ModelCache(tmp_path).put("key", b""))


def test_unusable_directory_raises_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    cache = ModelCache(blocker)

    with pytest.raises(StorageError):
        asyncio.run(cache.put("key", b"data"))
    with pytest.raises(StorageError):
        asyncio.run(cache.get("key"))
