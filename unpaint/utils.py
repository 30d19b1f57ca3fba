"""Shared utilities and type definitions for unpaint."""

import cv2
import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union
import logging

# Type aliases for clarity
ImageArray = np.ndarray  # H×W×3 BGR uint8
MaskArray = np.ndarray   # H×W uint8, 255 = remove
TensorArray = np.ndarray  # C×H×W uint8
BBox = Tuple[int, int, int, int]  # (x, y, width, height)
ImagePath = Union[str, Path]
StageCallback = Callable[[str], None]

# Supported image extensions
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif', '.webp'}

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with consistent formatting.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger

def set_package_log_level(level: int, logfile: Optional[ImagePath] = None) -> None:
    """Apply a log level to every unpaint logger, optionally teeing to a file.

    Args:
        level: Logging level
        logfile: Optional path of a log file to append to
    """
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not name.startswith("unpaint") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level)
        if logfile is not None:
            file_handler = logging.FileHandler(str(logfile))
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            logger.addHandler(file_handler)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Interleaved RGBA pixels with explicit width and height.

    ``data`` is stored as an H×W×4 uint8 array. A flat array of length
    ``width * height * 4`` is accepted and reshaped.
    """

    width: int
    height: int
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"PixelBuffer dimensions must be positive, got {self.width}x{self.height}"
            )
        data = np.asarray(self.data)
        if data.dtype != np.uint8:
            raise ValueError(f"PixelBuffer data must be uint8, got {data.dtype}")
        expected = self.width * self.height * 4
        if data.size != expected:
            raise ValueError(
                f"PixelBuffer data has {data.size} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )
        object.__setattr__(self, "data", data.reshape(self.height, self.width, 4))

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width), matching numpy ordering."""
        return (self.height, self.width)

    @classmethod
    def from_bgr(cls, image: ImageArray) -> "PixelBuffer":
        """Build from an OpenCV H×W×3 BGR (or H×W×4 BGRA) image."""
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise ValueError("image must be H×W×3 or H×W×4 array")
        code = cv2.COLOR_BGR2RGBA if image.shape[2] == 3 else cv2.COLOR_BGRA2RGBA
        rgba = cv2.cvtColor(image, code)
        return cls(rgba.shape[1], rgba.shape[0], rgba)

    def to_bgr(self) -> ImageArray:
        """Return an OpenCV H×W×3 BGR copy (alpha dropped)."""
        return cv2.cvtColor(self.data, cv2.COLOR_RGBA2BGR)


def load_image(image_path: ImagePath) -> ImageArray:
    """Load an image from file path.

    Args:
        image_path: Path to image file

    Returns:
        Image array in BGR format

    Raises:
        ValueError: If image cannot be loaded
    """
    image = cv2.imread(str(image_path))
    if image is None:
        raise ValueError(f"Could not load image: {image_path}")
    return image

def load_mask(mask_path: ImagePath) -> MaskArray:
    """Load a single-channel mask (white = remove) from file path.

    Raises:
        ValueError: If mask cannot be loaded
    """
    mask = cv2.imread(str(mask_path), cv2.IMREAD_GRAYSCALE)
    if mask is None:
        raise ValueError(f"Could not load mask: {mask_path}")
    return mask

def save_image(image: ImageArray, output_path: ImagePath, quality: int = 97) -> None:
    """Save an image to file with quality control.

    Args:
        image: Image array in BGR format
        output_path: Path where to save the image

    Raises:
        ValueError: If image cannot be saved
    """
    output_path = Path(output_path)

    # Set compression parameters based on file extension
    if output_path.suffix.lower() in {'.jpg', '.jpeg'}:
        params = [cv2.IMWRITE_JPEG_QUALITY, quality]
    elif output_path.suffix.lower() == '.png':
        params = [cv2.IMWRITE_PNG_COMPRESSION, 8]
    else:
        params = []

    success = cv2.imwrite(str(output_path), image, params)
    if not success:
        raise ValueError(f"Could not save image to: {output_path}")

def get_image_files(path: Path) -> List[Path]:
    """Get list of image files from path (file or directory).

    Mask files (``*_mask.*``) and previous outputs are skipped when
    scanning a directory.

    Args:
        path: Path to file or directory

    Returns:
        Sorted list of image file paths
    """
    if path.is_file():
        if path.suffix.lower() in IMAGE_EXTENSIONS:
            return [path]
        else:
            return []

    return sorted(
        f for f in path.glob("*")
        if f.suffix.lower() in IMAGE_EXTENSIONS
        and not f.stem.endswith(("_mask", "_no_watermark"))
    )

def format_megabytes(num_bytes: int) -> str:
    """Format a byte count as ``12.3MB``."""
    return f"{num_bytes / 1024 / 1024:.1f}MB"
