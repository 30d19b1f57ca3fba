"""Conversion between interleaved RGBA pixels and channel-first tensors.

The inpainting graph consumes two uint8 tensors:

- image: 3×H×W, RGB, values 0-255
- mask:  1×H×W, 255 = known pixel (keep), 0 = hole (repaint)

The mask polarity is the opposite of what the caller draws (red == 255
marks "remove"). The inversion in ``encode_mask`` is what the model
expects; flipping it makes the model repaint everything *except* the
marked region.
"""

import numpy as np

from .utils import PixelBuffer, TensorArray, setup_logger

logger = setup_logger(__name__)

KNOWN = 255
HOLE = 0


def encode_image(pixels: PixelBuffer) -> TensorArray:
    """Drop alpha and reorder RGBA (H×W×4) into channel-first RGB (3×H×W).

    Args:
        pixels: Source image

    Returns:
        Contiguous uint8 array of shape (3, H, W)
    """
    rgb = pixels.data[:, :, :3]
    tensor = np.ascontiguousarray(rgb.transpose(2, 0, 1), dtype=np.uint8)
    logger.debug(f"Encoded image tensor {tensor.shape}")
    return tensor


def encode_mask(pixels: PixelBuffer) -> TensorArray:
    """Read the red channel and invert it into the model's mask convention.

    A red value of exactly 255 becomes 0 (hole); every other value,
    including 254, becomes 255 (known).

    Args:
        pixels: Mask drawn by the caller

    Returns:
        Contiguous uint8 array of shape (1, H, W)
    """
    red = pixels.data[:, :, 0]
    tensor = np.where(red == 255, HOLE, KNOWN).astype(np.uint8)[np.newaxis, :, :]
    logger.debug(f"Encoded mask tensor {tensor.shape}, {int((tensor == HOLE).sum())} hole pixels")
    return np.ascontiguousarray(tensor)


def decode_output(tensor: np.ndarray, width: int, height: int) -> PixelBuffer:
    """Expand a channel-first RGB tensor back into opaque RGBA pixels.

    A leading batch axis of size 1 is accepted. Values are clamped to
    [0, 255] before conversion so float outputs cannot wrap around.

    Args:
        tensor: Array of shape (3, H, W) or (1, 3, H, W)
        width: Expected output width
        height: Expected output height

    Returns:
        Fresh PixelBuffer with alpha forced to 255

    Raises:
        ValueError: If the tensor does not hold 3×height×width values
    """
    array = np.asarray(tensor)
    if array.ndim == 4 and array.shape[0] == 1:
        array = array[0]
    if array.shape != (3, height, width):
        raise ValueError(
            f"output tensor shape {tuple(array.shape)} does not match (3, {height}, {width})"
        )

    rgb = np.clip(array, 0, 255)
    if np.issubdtype(rgb.dtype, np.floating):
        rgb = np.rint(rgb)

    data = np.empty((height, width, 4), dtype=np.uint8)
    data[:, :, :3] = rgb.transpose(1, 2, 0).astype(np.uint8)
    data[:, :, 3] = 255
    return PixelBuffer(width, height, data)
