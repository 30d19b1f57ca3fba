"""Tests for PixelBuffer and file helpers."""

from pathlib import Path

import cv2
import numpy as np
import pytest

from unpaint.utils import PixelBuffer, get_image_files


def test_flat_data_is_reshaped() -> None:
    pixels = PixelBuffer(3, 2, np.arange(24, dtype=np.uint8))
    assert pixels.data.shape == (2, 3, 4)
    assert pixels.shape == (2, 3)
    assert tuple(pixels.data[1, 0]) == (12, 13, 14, 15)


@pytest.mark.parametrize("width,height,data,message", [
    (2, 2, np.zeros(15, dtype=np.uint8), "expected 16"),
    (2, 2, np.zeros(16, dtype=np.float32), "uint8"),
    (0, 2, np.zeros(0, dtype=np.uint8), "positive"),
])
def test_invalid_buffers(width, height, data, message) -> None:
    with pytest.raises(ValueError, match=message):
        PixelBuffer(width, height, data)


def test_bgr_round_trip() -> None:
    bgr = np.zeros((4, 5, 3), dtype=np.uint8)
    bgr[:, :] = (10, 20, 30)

    pixels = PixelBuffer.from_bgr(bgr)

    assert tuple(pixels.data[0, 0]) == (30, 20, 10, 255)
    np.testing.assert_array_equal(pixels.to_bgr(), bgr)


def test_get_image_files_skips_masks_and_outputs(tmp_path: Path) -> None:
    blank = np.zeros((2, 2, 3), dtype=np.uint8)
    for name in ["b.png", "a.jpg", "a_mask.png", "a_no_watermark.png"]:
        cv2.imwrite(str(tmp_path / name), blank)
    (tmp_path / "notes.txt").write_text("x")

    assert [p.name for p in get_image_files(tmp_path)] == ["a.jpg", "b.png"]
