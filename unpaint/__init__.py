"""Unpaint: on-device image inpainting.

This package downloads and caches an ONNX inpainting model, converts
RGBA pixel buffers into the tensors the model expects, runs inference and
returns the repaired image at the caller's resolution.
"""

__version__ = "0.1.0"
__author__ = "Unpaint Team"

from .config import InpaintConfig
from .errors import (
    UnpaintError,
    StorageError,
    NetworkError,
    DownloadExhaustedError,
    RuntimeInitError,
    ShapeMismatchError,
    InferenceError,
)
from .tensor_codec import encode_image, encode_mask, decode_output
from .geometry import GeometryContext, resize_with_pad, restore_size
from .mask import mask_from_array, mask_from_boxes, mask_from_strokes
from .model_cache import ModelCache
from .downloader import DownloadProgress, ModelDownloader
from .session import InpaintSession, SessionProvider
from .pipeline import (
    InpaintContext,
    InpaintPipeline,
    download_model,
    get_session,
    inpaint,
    inpaint_image,
    is_model_cached,
    clear_model_cache,
)
from .utils import PixelBuffer, load_image, save_image, setup_logger

__all__ = [
    "InpaintConfig",
    "UnpaintError",
    "StorageError",
    "NetworkError",
    "DownloadExhaustedError",
    "RuntimeInitError",
    "ShapeMismatchError",
    "InferenceError",
    "encode_image",
    "encode_mask",
    "decode_output",
    "GeometryContext",
    "resize_with_pad",
    "restore_size",
    "mask_from_array",
    "mask_from_boxes",
    "mask_from_strokes",
    "ModelCache",
    "DownloadProgress",
    "ModelDownloader",
    "InpaintSession",
    "SessionProvider",
    "InpaintContext",
    "InpaintPipeline",
    "download_model",
    "get_session",
    "inpaint",
    "inpaint_image",
    "is_model_cached",
    "clear_model_cache",
    "PixelBuffer",
    "load_image",
    "save_image",
    "setup_logger",
]
