"""Image inpainting pipeline.

This module ties the pieces together: validate and encode the image and
mask, obtain the shared inference session (downloading the model on first
use), run one forward pass and decode the result into fresh RGBA pixels.

``InpaintContext`` groups the config, model cache, downloader and session
provider that belong together. The module-level entry points work on a
lazily created default context; pass ``context=`` to use an isolated one.
"""

import asyncio
from typing import Optional

import cv2
import httpx
import numpy as np

from .config import InpaintConfig
from .downloader import ModelDownloader, ProgressCallback
from .errors import InferenceError, ShapeMismatchError, StorageError
from .geometry import GeometryContext, resize_with_pad, restore_size
from .mask import mask_from_array
from .model_cache import ModelCache
from .session import InpaintSession, SessionFactory, SessionProvider, build_onnx_session
from .tensor_codec import decode_output, encode_image, encode_mask
from .utils import ImageArray, MaskArray, PixelBuffer, StageCallback, setup_logger

logger = setup_logger(__name__)

STAGE_PREPARING = "preparing image"
STAGE_RUNNING = "running model"
STAGE_PROCESSING = "processing result"


class InpaintContext:
    """Config, cache, downloader and session provider for one model."""

    def __init__(
        self,
        config: Optional[InpaintConfig] = None,
        cache: Optional[ModelCache] = None,
        downloader: Optional[ModelDownloader] = None,
        session_factory: SessionFactory = build_onnx_session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config if config is not None else InpaintConfig.from_env()
        self.cache = cache if cache is not None else ModelCache(self.config.cache_dir)
        self.downloader = downloader if downloader is not None else ModelDownloader(
            self.cache,
            self.config.model_urls,
            self.config.model_key,
            chunk_size=self.config.chunk_size,
            timeout=self.config.timeout,
            transport=transport,
        )
        self.sessions = SessionProvider(self.downloader, self.config, session_factory)

    async def download_model(self, on_progress: Optional[ProgressCallback] = None) -> bytes:
        return await self.downloader.download_model(on_progress)

    async def get_session(self, on_progress: Optional[ProgressCallback] = None) -> InpaintSession:
        return await self.sessions.get_session(on_progress)

    async def is_model_cached(self) -> bool:
        """True when the model blob is in the persistent cache."""
        try:
            return await self.cache.contains(self.config.model_key)
        except StorageError as e:
            logger.warning(f"Could not check model cache: {e}")
            return False

    async def clear_model_cache(self) -> None:
        """Delete the cached model and release the in-memory session.

        Raises:
            StorageError: If the cached file exists but cannot be removed
        """
        self.sessions.invalidate()
        await self.cache.delete(self.config.model_key)


class InpaintPipeline:
    """Turns an (image, mask) pair into a repaired image."""

    def __init__(self, context: InpaintContext) -> None:
        self.context = context

    async def inpaint(
        self,
        image: PixelBuffer,
        mask: PixelBuffer,
        on_stage: Optional[StageCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PixelBuffer:
        """Repaint the pixels whose mask red channel is 255.

        Args:
            image: Source RGBA pixels (not modified)
            mask: Same-size RGBA mask, red == 255 marks "remove"
            on_stage: Called with each stage label as the call progresses
            on_progress: Forwarded to the model download on first use

        Returns:
            New opaque RGBA buffer with the image's width and height

        Raises:
            ShapeMismatchError: If image and mask sizes differ
            DownloadExhaustedError: If the model could not be obtained
            RuntimeInitError: If the model could not be loaded
            InferenceError: If the forward pass or its output is unusable
        """
        def notify(stage: str) -> None:
            logger.info(f"Stage: {stage}")
            if on_stage is not None:
                on_stage(stage)

        notify(STAGE_PREPARING)
        if (image.width, image.height) != (mask.width, mask.height):
            logger.error(
                f"Image is {image.width}x{image.height} but mask is {mask.width}x{mask.height}"
            )
            raise ShapeMismatchError(
                f"image is {image.width}x{image.height} but mask is {mask.width}x{mask.height}"
            )

        geometry: Optional[GeometryContext] = None
        fixed_size = self.context.config.fixed_size
        if fixed_size is not None:
            image, geometry = resize_with_pad(image, fixed_size)
            mask, _ = resize_with_pad(mask, fixed_size, interpolation=cv2.INTER_NEAREST)

        image_tensor = encode_image(image)[np.newaxis]
        mask_tensor = encode_mask(mask)[np.newaxis]

        notify(STAGE_RUNNING)
        session = await self.context.get_session(on_progress)

        logger.debug(f"Running model on image {image_tensor.shape}, mask {mask_tensor.shape}")
        output = await asyncio.to_thread(session.run, image_tensor, mask_tensor)

        notify(STAGE_PROCESSING)
        try:
            result = decode_output(output, image.width, image.height)
        except ValueError as e:
            logger.error(f"Unusable model output: {e}")
            raise InferenceError(str(e), stage=STAGE_PROCESSING) from e

        if geometry is not None:
            result = restore_size(result, geometry)
        return result


# ---------- module-level entry points ----------

_default_context: Optional[InpaintContext] = None


def get_default_context() -> InpaintContext:
    """The process-wide context, created from the environment on first use."""
    global _default_context
    if _default_context is None:
        _default_context = InpaintContext()
    return _default_context


def set_default_context(context: Optional[InpaintContext]) -> None:
    """Replace (or with None, reset) the process-wide context."""
    global _default_context
    _default_context = context


async def download_model(
    on_progress: Optional[ProgressCallback] = None,
    context: Optional[InpaintContext] = None,
) -> bytes:
    return await (context or get_default_context()).download_model(on_progress)


async def get_session(
    on_progress: Optional[ProgressCallback] = None,
    context: Optional[InpaintContext] = None,
) -> InpaintSession:
    return await (context or get_default_context()).get_session(on_progress)


async def inpaint(
    image: PixelBuffer,
    mask: PixelBuffer,
    on_stage: Optional[StageCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
    context: Optional[InpaintContext] = None,
) -> PixelBuffer:
    pipeline = InpaintPipeline(context or get_default_context())
    return await pipeline.inpaint(image, mask, on_stage=on_stage, on_progress=on_progress)


async def is_model_cached(context: Optional[InpaintContext] = None) -> bool:
    return await (context or get_default_context()).is_model_cached()


async def clear_model_cache(context: Optional[InpaintContext] = None) -> None:
    await (context or get_default_context()).clear_model_cache()


def inpaint_image(
    image: ImageArray,
    mask: MaskArray,
    context: Optional[InpaintContext] = None,
    on_stage: Optional[StageCallback] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ImageArray:
    """Blocking helper for OpenCV arrays.

    Args:
        image: H×W×3 BGR uint8
        mask: H×W uint8, 255 = remove

    Returns:
        Inpainted H×W×3 BGR uint8
    """
    result = asyncio.run(inpaint(
        PixelBuffer.from_bgr(image),
        mask_from_array(mask),
        on_stage=on_stage,
        on_progress=on_progress,
        context=context,
    ))
    return result.to_bgr()
