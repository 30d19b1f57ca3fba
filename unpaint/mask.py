"""Helpers that turn user marks into mask PixelBuffers.

A mask buffer marks pixels to remove with red == 255 (the helpers paint
white on black, so every channel is 255 in the marked area).
"""

from typing import Iterable, Sequence, Tuple

import cv2
import numpy as np

from .utils import BBox, MaskArray, PixelBuffer, setup_logger

logger = setup_logger(__name__)

Point = Tuple[int, int]
Stroke = Tuple[Sequence[Point], int]  # (points, brush size in px)


def mask_from_array(mask: MaskArray) -> PixelBuffer:
    """Wrap an H×W single-channel mask (255 = remove) as an RGBA mask buffer.

    Only exact 255 counts as marked, matching how the mask is encoded.
    """
    if mask.ndim == 3:
        mask = mask[:, :, 0]
    if mask.ndim != 2:
        raise ValueError("mask must be an H×W array")
    marked = np.where(mask == 255, 255, 0).astype(np.uint8)
    data = np.empty((*marked.shape, 4), dtype=np.uint8)
    data[:, :, :3] = marked[:, :, np.newaxis]
    data[:, :, 3] = 255
    return PixelBuffer(marked.shape[1], marked.shape[0], data)


def mask_from_boxes(width: int, height: int, boxes: Iterable[BBox]) -> PixelBuffer:
    """Mark every (x, y, width, height) rectangle, clipped to the image."""
    mask = np.zeros((height, width), dtype=np.uint8)
    for x, y, w, h in boxes:
        if w <= 0 or h <= 0:
            raise ValueError(f"box must have positive width/height, got {(x, y, w, h)}")
        x1, y1 = max(0, x), max(0, y)
        x2, y2 = min(width, x + w), min(height, y + h)
        if x2 <= x1 or y2 <= y1:
            logger.warning(f"Box {(x, y, w, h)} lies outside the {width}x{height} image")
            continue
        mask[y1:y2, x1:x2] = 255
    return mask_from_array(mask)


def mask_from_strokes(width: int, height: int, strokes: Iterable[Stroke]) -> PixelBuffer:
    """Rasterise brush strokes with round caps and joins.

    Each stroke is a polyline drawn with its own brush diameter. Strokes
    with fewer than two points are skipped, as the drawing surface does.
    """
    mask = np.zeros((height, width), dtype=np.uint8)
    for points, brush_size in strokes:
        if len(points) < 2:
            continue
        thickness = max(1, int(brush_size))
        radius = thickness // 2
        for (x0, y0), (x1, y1) in zip(points, points[1:]):
            cv2.line(mask, (int(x0), int(y0)), (int(x1), int(y1)), 255, thickness, cv2.LINE_8)
        # round caps/joins
        if radius > 0:
            for x, y in points:
                cv2.circle(mask, (int(x), int(y)), radius, 255, -1, cv2.LINE_8)
    return mask_from_array(mask)


def has_marked_pixels(mask: PixelBuffer) -> bool:
    """True when at least one pixel has red == 255."""
    return bool(np.any(mask.data[:, :, 0] == 255))
