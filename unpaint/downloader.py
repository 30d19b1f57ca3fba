"""Model download with mirror fallback and streaming progress.

The cache is consulted first. On a miss each mirror is tried in order with
a streaming GET; the first one that delivers a complete, non-empty body
wins and is written through to the cache. A failing mirror (bad status,
transport error, truncated body) only moves on to the next one. When no
mirror succeeds a ``DownloadExhaustedError`` is raised; a partial model is
never returned.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import httpx

from .errors import DownloadExhaustedError, NetworkError, StorageError
from .model_cache import ModelCache
from .utils import format_megabytes, setup_logger

logger = setup_logger(__name__)

STAGE_CACHED = "loading model"
STAGE_DOWNLOADING = "downloading model"

# Upper bound on connection setup; the overall timeout caps it further
CONNECT_TIMEOUT = 30.0


@dataclass(frozen=True)
class DownloadProgress:
    """One progress report.

    ``total`` and ``percent`` are None when the server sent no size hint.
    """

    stage: str
    loaded: int
    total: Optional[int] = None
    percent: Optional[int] = None


ProgressCallback = Callable[[DownloadProgress], None]


def _content_length(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("content-length")
    try:
        total = int(value) if value is not None else 0
    except ValueError:
        return None
    return total if total > 0 else None


class ModelDownloader:
    """Fetches the model bytes, preferring the cache over the network."""

    def __init__(
        self,
        cache: ModelCache,
        urls: Sequence[str],
        model_key: str,
        chunk_size: int = 64 * 1024,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cache = cache
        self.urls = list(urls)
        self.model_key = model_key
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._transport = transport

    def client_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout, connect=min(CONNECT_TIMEOUT, self.timeout))

    async def read_cache(self) -> Optional[bytes]:
        """Cached model bytes, or None on a miss or an unreadable store."""
        try:
            return await self.cache.get(self.model_key)
        except StorageError as e:
            logger.warning(f"Model cache unavailable, downloading instead: {e}")
            return None

    async def download_model(self, on_progress: Optional[ProgressCallback] = None) -> bytes:
        """Return the model bytes from cache or the first working mirror.

        Args:
            on_progress: Called with a ``DownloadProgress`` per chunk, and
                once with 100% on a cache hit

        Returns:
            Complete model binary

        Raises:
            DownloadExhaustedError: If every mirror failed
        """
        cached = await self.read_cache()
        if cached is not None:
            logger.info(f"Model {self.model_key} loaded from cache ({len(cached):,} bytes)")
            if on_progress is not None:
                on_progress(DownloadProgress(STAGE_CACHED, len(cached), len(cached), 100))
            return cached

        failures: List[tuple] = []
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.client_timeout(),
            transport=self._transport,
        ) as client:
            for url in self.urls:
                try:
                    blob = await self._fetch(client, url, on_progress)
                except NetworkError as e:
                    logger.warning(f"Failed to download from {url}: {e}")
                    failures.append((url, e))
                    continue

                try:
                    await self.cache.put(self.model_key, blob)
                except StorageError as e:
                    logger.warning(f"Downloaded model could not be cached: {e}")
                return blob

        logger.error(f"Model download failed on all {len(self.urls)} mirrors")
        raise DownloadExhaustedError(failures)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        url: str,
        on_progress: Optional[ProgressCallback],
    ) -> bytes:
        """Stream one mirror into memory, reporting progress per chunk."""
        logger.info(f"Downloading model from {url}")
        chunks: List[bytes] = []
        loaded = 0
        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise NetworkError(
                        f"HTTP {response.status_code}", url, status_code=response.status_code
                    )
                total = _content_length(response)
                async for chunk in response.aiter_bytes(self.chunk_size):
                    if not chunk:
                        continue
                    chunks.append(chunk)
                    loaded += len(chunk)
                    if on_progress is not None:
                        percent = min(100, round(loaded / total * 100)) if total else None
                        on_progress(DownloadProgress(STAGE_DOWNLOADING, loaded, total, percent))
        except httpx.HTTPError as e:
            raise NetworkError(f"{type(e).__name__}: {e}", url) from e

        if loaded == 0:
            raise NetworkError("empty response body", url)
        if total is not None and loaded < total:
            raise NetworkError(f"truncated body ({loaded} of {total} bytes)", url)

        logger.info(f"Downloaded {format_megabytes(loaded)} from {url}")
        return b"".join(chunks)
