"""Lazily built, shared inference session.

``SessionProvider`` owns at most one loaded session. The first
``get_session`` call starts a single initialization task (cache read or
download, then runtime construction); every caller that arrives while it
is running awaits that same task, so concurrent callers never trigger a
second download or a second runtime build. A failed initialization is
forgotten so the next call can try again.

The graph interface is checked once, right after the runtime is built:
the configured image/mask input names and the output name must all be
declared by the model, otherwise ``RuntimeInitError`` is raised instead of
guessing by position.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence

import numpy as np
import onnxruntime as ort

from .config import InpaintConfig
from .downloader import ModelDownloader, ProgressCallback
from .errors import InferenceError, RuntimeInitError
from .utils import TensorArray, setup_logger

logger = setup_logger(__name__)

SessionFactory = Callable[[bytes, Sequence[str]], Any]


def build_onnx_session(model_bytes: bytes, providers: Sequence[str]) -> "ort.InferenceSession":
    """Build an onnxruntime session from in-memory model bytes.

    Graph optimizations are fully enabled; ``providers`` is normally just
    ``CPUExecutionProvider``.
    """
    so = ort.SessionOptions()
    so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    return ort.InferenceSession(model_bytes, sess_options=so, providers=list(providers))


@dataclass(frozen=True)
class SessionInterface:
    """Validated tensor names for each role."""

    image_input: str
    mask_input: str
    output: str


def resolve_interface(
    runtime: Any,
    input_names: Mapping[str, str],
    output_name: str,
) -> SessionInterface:
    """Match the expected role names against the model's declared names.

    Raises:
        RuntimeInitError: If any expected name is not declared
    """
    declared_inputs = [node.name for node in runtime.get_inputs()]
    declared_outputs = [node.name for node in runtime.get_outputs()]
    logger.info(f"Model inputs: {declared_inputs}, outputs: {declared_outputs}")

    missing = [
        f"{role} input '{name}'"
        for role, name in sorted(input_names.items())
        if name not in declared_inputs
    ]
    if output_name not in declared_outputs:
        missing.append(f"output '{output_name}'")
    if missing:
        raise RuntimeInitError(
            f"model interface mismatch: missing {', '.join(missing)} "
            f"(declared inputs {declared_inputs}, outputs {declared_outputs})"
        )

    return SessionInterface(
        image_input=input_names["image"],
        mask_input=input_names["mask"],
        output=output_name,
    )


class InpaintSession:
    """A built runtime plus the names to feed and fetch."""

    def __init__(self, runtime: Any, interface: SessionInterface) -> None:
        self.runtime = runtime
        self.interface = interface

    def run(self, image_tensor: TensorArray, mask_tensor: TensorArray) -> np.ndarray:
        """Run one forward pass (blocking) and return the output tensor.

        Args:
            image_tensor: uint8 array of shape (1, 3, H, W)
            mask_tensor: uint8 array of shape (1, 1, H, W)

        Raises:
            InferenceError: If the runtime fails or returns nothing
        """
        feeds = {
            self.interface.image_input: image_tensor,
            self.interface.mask_input: mask_tensor,
        }
        try:
            outputs = self.runtime.run([self.interface.output], feeds)
        except Exception as e:
            raise InferenceError(f"forward pass failed: {e}") from e
        if not outputs:
            raise InferenceError("model returned no outputs")
        return np.asarray(outputs[0])


class SessionProvider:
    """Holds the single shared ``InpaintSession`` for one context."""

    def __init__(
        self,
        downloader: ModelDownloader,
        config: InpaintConfig,
        session_factory: SessionFactory = build_onnx_session,
    ) -> None:
        self.downloader = downloader
        self.config = config
        self._factory = session_factory
        self._session: Optional[InpaintSession] = None
        self._pending: Optional[asyncio.Future] = None
        self._generation = 0

    @property
    def is_loaded(self) -> bool:
        """True once a session has been built and not invalidated since."""
        return self._session is not None

    async def get_session(self, on_progress: Optional[ProgressCallback] = None) -> InpaintSession:
        """Return the shared session, building it on first use.

        Only the caller that starts initialization has its ``on_progress``
        wired to the download; later callers just wait. Cancelling a waiting
        caller does not cancel the shared initialization.

        Raises:
            DownloadExhaustedError: If the model could not be obtained
            RuntimeInitError: If the runtime could not be built
        """
        if self._session is not None:
            return self._session

        if self._pending is None:
            task = asyncio.ensure_future(self._build(on_progress))
            task.add_done_callback(functools.partial(self._on_built, self._generation))
            self._pending = task
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """Drop the in-memory session; an in-flight build will not be kept."""
        if self._session is not None:
            logger.info("Releasing inference session")
        self._session = None
        self._pending = None
        self._generation += 1

    def _on_built(self, generation: int, task: asyncio.Future) -> None:
        if self._pending is task:
            self._pending = None
        if task.cancelled() or task.exception() is not None:
            return
        if generation == self._generation:
            self._session = task.result()
        else:
            logger.info("Discarding session built before the cache was cleared")

    async def _build(self, on_progress: Optional[ProgressCallback]) -> InpaintSession:
        model_bytes = await self.downloader.download_model(on_progress)

        logger.info(
            f"Building inference session ({len(model_bytes):,} bytes, "
            f"providers={self.config.providers})"
        )
        try:
            runtime = await asyncio.to_thread(self._factory, model_bytes, self.config.providers)
        except RuntimeInitError:
            raise
        except Exception as e:
            logger.error(f"Failed to build inference session: {e}")
            raise RuntimeInitError(f"could not build inference session: {e}") from e

        interface = resolve_interface(runtime, self.config.input_names, self.config.output_name)
        logger.info("Inference session ready")
        return InpaintSession(runtime, interface)
