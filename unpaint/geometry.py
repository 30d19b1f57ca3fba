"""Letterbox resize and its matched inverse.

``resize_with_pad`` scales an image uniformly to fit a square canvas and
centres it on a black background. ``restore_size`` undoes that using the
``GeometryContext`` recorded by the forward pass. The inverse always uses
the recorded ``new_width``/``new_height`` instead of recomputing them from
``scale``, so both directions agree on the exact content rectangle.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .utils import PixelBuffer, setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class GeometryContext:
    """Everything ``restore_size`` needs to invert a letterbox resize."""

    scale: float
    pad_x: int
    pad_y: int
    new_width: int
    new_height: int
    original_width: int
    original_height: int
    target_size: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _pick_interpolation(src: Tuple[int, int], dst: Tuple[int, int]) -> int:
    # INTER_AREA only helps when shrinking
    if dst[0] < src[0] or dst[1] < src[1]:
        return cv2.INTER_AREA
    return cv2.INTER_LINEAR


def compute_geometry(width: int, height: int, target_size: int) -> GeometryContext:
    """Compute scale, scaled size and centring offsets for a letterbox.

    The scaled size is clamped to [1, target_size] on each axis so extreme
    aspect ratios or tiny targets never produce an empty content region.

    Raises:
        ValueError: If any dimension is not positive
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"image dimensions must be positive, got {width}x{height}")
    if target_size < 1:
        raise ValueError(f"target_size must be at least 1, got {target_size}")

    scale = min(target_size / width, target_size / height)
    new_width = min(target_size, max(1, _round_half_up(width * scale)))
    new_height = min(target_size, max(1, _round_half_up(height * scale)))
    pad_x = (target_size - new_width) // 2
    pad_y = (target_size - new_height) // 2

    return GeometryContext(
        scale=scale,
        pad_x=pad_x,
        pad_y=pad_y,
        new_width=new_width,
        new_height=new_height,
        original_width=width,
        original_height=height,
        target_size=target_size,
    )


def resize_with_pad(
    image: PixelBuffer,
    target_size: int,
    interpolation: Optional[int] = None,
) -> Tuple[PixelBuffer, GeometryContext]:
    """Scale ``image`` to fit a ``target_size`` square and centre it on black.

    Args:
        image: Source pixels
        target_size: Side of the square output canvas
        interpolation: OpenCV interpolation flag; chosen from the scale
            direction when omitted. Pass ``cv2.INTER_NEAREST`` for masks so
            marked pixels keep their exact value.

    Returns:
        Tuple of (padded square image, context for ``restore_size``)
    """
    ctx = compute_geometry(image.width, image.height, target_size)
    if interpolation is None:
        interpolation = _pick_interpolation(
            (image.width, image.height), (ctx.new_width, ctx.new_height)
        )

    scaled = cv2.resize(
        image.data, (ctx.new_width, ctx.new_height), interpolation=interpolation
    )

    canvas = np.zeros((target_size, target_size, 4), dtype=np.uint8)
    canvas[:, :, 3] = 255
    canvas[ctx.pad_y:ctx.pad_y + ctx.new_height, ctx.pad_x:ctx.pad_x + ctx.new_width] = scaled

    if ctx.new_width < target_size or ctx.new_height < target_size:
        logger.debug(
            f"Letterboxed {image.width}x{image.height} -> {ctx.new_width}x{ctx.new_height} "
            f"at ({ctx.pad_x}, {ctx.pad_y}) in {target_size}x{target_size}"
        )

    return PixelBuffer(target_size, target_size, canvas), ctx


def restore_size(
    processed: PixelBuffer,
    ctx: GeometryContext,
    interpolation: Optional[int] = None,
) -> PixelBuffer:
    """Crop the content rectangle out of a padded canvas and scale it back.

    Args:
        processed: Square canvas produced by (or derived from) ``resize_with_pad``
        ctx: Context recorded by the forward pass, unmodified

    Returns:
        Pixels at ``(original_width, original_height)``

    Raises:
        ValueError: If the canvas is too small to hold the recorded region
    """
    if processed.width < ctx.pad_x + ctx.new_width or processed.height < ctx.pad_y + ctx.new_height:
        raise ValueError(
            f"canvas {processed.width}x{processed.height} cannot hold region "
            f"{ctx.new_width}x{ctx.new_height} at ({ctx.pad_x}, {ctx.pad_y})"
        )

    crop = processed.data[ctx.pad_y:ctx.pad_y + ctx.new_height, ctx.pad_x:ctx.pad_x + ctx.new_width]
    if interpolation is None:
        interpolation = _pick_interpolation(
            (ctx.new_width, ctx.new_height), (ctx.original_width, ctx.original_height)
        )

    restored = cv2.resize(
        np.ascontiguousarray(crop),
        (ctx.original_width, ctx.original_height),
        interpolation=interpolation,
    )
    return PixelBuffer(ctx.original_width, ctx.original_height, restored)
