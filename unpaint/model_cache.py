"""Persistent key-value store for downloaded model binaries.

Blobs live as files under a per-user directory so they survive process
restarts. Writes go to a temporary file first and are moved into place
with ``os.replace``, so a crash mid-write never leaves a truncated model
under the real key. All I/O failures surface as ``StorageError``; callers
treat that as "no cache" and carry on.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

from .errors import StorageError
from .utils import setup_logger

logger = setup_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class ModelCache:
    """File-backed ``get``/``put``/``delete`` keyed by a model version string."""

    suffix = ".bin"

    def __init__(self, cache_dir: Union[str, Path]) -> None:
        self.cache_dir = Path(cache_dir).expanduser()

    def path_for(self, key: str) -> Path:
        """Location of the blob stored under ``key``."""
        if not key:
            raise ValueError("cache key must not be empty")
        return self.cache_dir / (_UNSAFE_CHARS.sub("_", key) + self.suffix)

    # ---------- blocking helpers ----------
    def _read(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"could not read {path}: {e}") from e

    def _write(self, key: str, blob: bytes) -> None:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".part", dir=self.cache_dir)
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"could not write {path}: {e}") from e

    def _remove(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"could not delete {path}: {e}") from e

    # ---------- public API ----------
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored blob, or None when nothing is cached under ``key``.

        Raises:
            StorageError: If the store exists but cannot be read
        """
        blob = await asyncio.to_thread(self._read, key)
        if blob is not None and len(blob) == 0:
            logger.warning(f"Ignoring empty cache entry for {key}")
            return None
        return blob

    async def put(self, key: str, blob: bytes) -> None:
        """Store ``blob`` under ``key``, replacing any previous value.

        Raises:
            ValueError: If ``blob`` is empty
            StorageError: If the blob cannot be written
        """
        if not blob:
            raise ValueError("refusing to cache an empty model")
        await asyncio.to_thread(self._write, key, bytes(blob))
        logger.info(f"Cached model {key} ({len(blob):,} bytes) at {self.path_for(key)}")

    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error.

        Raises:
            StorageError: If an existing entry cannot be removed
        """
        await asyncio.to_thread(self._remove, key)
        logger.info(f"Removed cached model {key}")

    async def contains(self, key: str) -> bool:
        """True when a non-empty blob is stored under ``key``."""
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(lambda: path.is_file() and path.stat().st_size > 0)
        except OSError as e:
            raise StorageError(f"could not stat {path}: {e}") from e
