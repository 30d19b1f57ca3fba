"""Tests for mask construction helpers."""

import numpy as np
import pytest

from unpaint.mask import has_marked_pixels, mask_from_array, mask_from_boxes, mask_from_strokes
from unpaint.tensor_codec import encode_mask


def test_mask_from_array_only_exact_white_marks() -> None:
    gray = np.array([[0, 254], [255, 128]], dtype=np.uint8)

    mask = mask_from_array(gray)

    assert (mask.width, mask.height) == (2, 2)
    np.testing.assert_array_equal(mask.data[:, :, 0], [[0, 0], [255, 0]])
    assert np.all(mask.data[:, :, 3] == 255)


def test_mask_from_array_rejects_bad_rank() -> None:
    with pytest.raises(ValueError, match="H×W"):
        mask_from_array(np.zeros((2, 2, 2, 2), dtype=np.uint8))


def test_mask_from_boxes_clips_to_image() -> None:
    mask = mask_from_boxes(50, 40, [(10, 5, 20, 10), (45, 35, 20, 20)])

    red = mask.data[:, :, 0]
    assert np.all(red[5:15, 10:30] == 255)
    assert np.all(red[35:40, 45:50] == 255)
    assert int((red == 255).sum()) == 20 * 10 + 5 * 5


def test_mask_from_boxes_outside_image_is_empty() -> None:
    mask = mask_from_boxes(10, 10, [(20, 20, 5, 5)])
    assert not has_marked_pixels(mask)


def test_mask_from_boxes_rejects_empty_box() -> None:
    with pytest.raises(ValueError, match="positive"):
        mask_from_boxes(10, 10, [(1, 1, 0, 4)])


def test_mask_from_strokes_draws_thick_round_line() -> None:
    mask = mask_from_strokes(100, 60, [([(20, 30), (80, 30)], 10)])

    red = mask.data[:, :, 0]
    assert red[30, 50] == 255
    assert red[26, 50] == 255
    assert red[30, 16] == 255  # round cap past the first point
    assert red[10, 50] == 0


def test_mask_from_strokes_skips_single_points() -> None:
    mask = mask_from_strokes(20, 20, [([(5, 5)], 8)])
    assert not has_marked_pixels(mask)


def test_stroke_mask_encodes_holes_where_drawn() -> None:
    mask = mask_from_strokes(40, 40, [([(5, 20), (35, 20)], 4)])
    tensor = encode_mask(mask)
    assert tensor[0, 20, 20] == 0
    assert tensor[0, 0, 0] == 255
