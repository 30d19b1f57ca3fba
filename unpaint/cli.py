"""Command-line interface for unpaint.

Removes marked regions from one image or a directory of images. The mask
comes from a mask file (white = remove), from ``-b`` boxes, or, in
directory mode, from a ``<stem>_mask.png`` next to each image. Model
management (download, status, cache clearing) is available as separate
flags.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from tqdm import tqdm

from .config import InpaintConfig
from .downloader import DownloadProgress
from .errors import DownloadExhaustedError, RuntimeInitError, ShapeMismatchError, UnpaintError
from .mask import has_marked_pixels, mask_from_array, mask_from_boxes
from .pipeline import InpaintContext, InpaintPipeline
from .utils import (
    BBox, PixelBuffer, format_megabytes, get_image_files, load_image, load_mask,
    save_image, set_package_log_level, setup_logger,
)

logger = setup_logger(__name__)

OUTPUT_SUFFIX = "_no_watermark"


class _DownloadBar:
    """Adapts ``DownloadProgress`` reports to a tqdm bar."""

    def __init__(self) -> None:
        self.bar: Optional[tqdm] = None

    def __call__(self, progress: DownloadProgress) -> None:
        if self.bar is None:
            self.bar = tqdm(
                total=progress.total,
                unit="B",
                unit_scale=True,
                desc=progress.stage,
                leave=False,
            )
        self.bar.n = progress.loaded
        self.bar.refresh()

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def parse_box(value: str) -> BBox:
    """Parse ``x,y,width,height`` where x,y is the top-left corner."""
    try:
        x, y, w, h = (int(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"box must be x,y,width,height (got {value!r})"
        )
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError(f"box must have positive width/height (got {value!r})")
    return (x, y, w, h)


def find_mask_for(image_path: Path) -> Optional[Path]:
    """Locate ``<stem>_mask.png`` beside an image."""
    candidate = image_path.with_name(f"{image_path.stem}_mask.png")
    return candidate if candidate.exists() else None


def output_path_for(image_path: Path, output_dir: Path) -> Path:
    return output_dir / f"{image_path.stem}{OUTPUT_SUFFIX}.png"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Remove marked regions from images with an on-device inpainting model."
    )

    parser.add_argument(
        "-i", "--input",
        help="Path to input image file or directory of images"
    )

    parser.add_argument(
        "-o", "--output",
        help="Path to output directory"
    )

    parser.add_argument(
        "-m", "--maskfile",
        help="Path to mask file (white = remove); single-image mode only"
    )

    parser.add_argument(
        "-b", "--box",
        type=parse_box,
        action="append",
        default=[],
        help="Region to remove as x,y,width,height (top-left corner); may be repeated"
    )

    parser.add_argument(
        "--fixed-size",
        type=int,
        help="Letterbox to an N×N square before inference (for fixed-resolution models)"
    )

    parser.add_argument(
        "--cache-dir",
        help="Directory for the downloaded model (default: ~/.unpaint/models)"
    )

    parser.add_argument(
        "--download",
        action="store_true",
        help="Download the model (if not cached) and exit"
    )

    parser.add_argument(
        "--status",
        action="store_true",
        help="Report whether the model is cached and exit"
    )

    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete the cached model and exit"
    )

    parser.add_argument(
        "-l", "--logfile",
        help="Path to log file for detailed logging"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args(argv)
    management = args.download or args.status or args.clear_cache
    if not management and (args.input is None or args.output is None):
        parser.error("-i/--input and -o/--output are required unless --download, --status or --clear-cache is given")
    if args.fixed_size is not None and args.fixed_size < 1:
        parser.error("--fixed-size must be at least 1")
    return args


def _collect_jobs(args: argparse.Namespace) -> List[Tuple[Path, Optional[Path]]]:
    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input path does not exist: {input_path}")

    image_files = get_image_files(input_path)
    if input_path.is_file():
        mask = Path(args.maskfile) if args.maskfile else find_mask_for(input_path)
        return [(f, mask) for f in image_files]

    if args.maskfile:
        logger.warning("--maskfile is ignored for directory input; using <stem>_mask.png files")
    return [(f, find_mask_for(f)) for f in image_files]


async def _process_image(
    pipeline: InpaintPipeline,
    image_path: Path,
    mask_path: Optional[Path],
    boxes: List[BBox],
    output_dir: Path,
    bar: _DownloadBar,
) -> Optional[Path]:
    image_bgr = load_image(image_path)
    image = PixelBuffer.from_bgr(image_bgr)
    height, width = image_bgr.shape[:2]

    if mask_path is not None:
        mask = mask_from_array(load_mask(mask_path))
        if (mask.width, mask.height) != (width, height):
            raise ShapeMismatchError(
                f"{mask_path.name} is {mask.width}x{mask.height} but {image_path.name} is {width}x{height}"
            )
        if boxes:
            box_mask = mask_from_boxes(width, height, boxes)
            merged = mask.data.copy()
            merged[box_mask.data[:, :, 0] == 255] = 255
            mask = PixelBuffer(width, height, merged)
    elif boxes:
        mask = mask_from_boxes(width, height, boxes)
    else:
        logger.warning(f"No mask for {image_path.name} - skipping")
        return None

    output_path = output_path_for(image_path, output_dir)
    if not has_marked_pixels(mask):
        logger.info(f"Nothing to remove in {image_path.name} - copying input unchanged")
        save_image(image_bgr, output_path)
        return output_path

    start = time.time()
    try:
        result = await pipeline.inpaint(image, mask, on_progress=bar)
    finally:
        bar.close()
    save_image(result.to_bgr(), output_path)
    logger.info(f"Saved {output_path.name} ({time.time() - start:.1f}s)")
    return output_path


async def _run(args: argparse.Namespace) -> int:
    config = InpaintConfig.from_env(cache_dir=args.cache_dir, fixed_size=args.fixed_size)
    context = InpaintContext(config)

    if args.clear_cache:
        await context.clear_model_cache()
        logger.info(f"Model cache cleared ({config.cache_dir})")
        return 0

    if args.status:
        cached = await context.is_model_cached()
        path = context.cache.path_for(config.model_key)
        print(f"{config.model_key}: {'cached at ' + str(path) if cached else 'not cached'}")
        return 0

    if args.download:
        bar = _DownloadBar()
        try:
            blob = await context.download_model(bar)
        finally:
            bar.close()
        logger.info(f"Model ready ({format_megabytes(len(blob))})")
        return 0

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    jobs = _collect_jobs(args)
    if not jobs:
        logger.error(f"No image files found in {args.input}")
        return 1

    pipeline = InpaintPipeline(context)
    bar = _DownloadBar()
    processed = 0
    failed = 0
    for image_path, mask_path in jobs:
        logger.info(f"Processing {image_path.name}")
        try:
            if await _process_image(pipeline, image_path, mask_path, args.box, output_dir, bar):
                processed += 1
        except (DownloadExhaustedError, RuntimeInitError):
            raise
        except Exception as e:
            logger.error(f"Error processing {image_path.name}: {e}")
            failed += 1
            continue

    logger.info(f"Processed {processed}/{len(jobs)} images")
    return 0 if processed and not failed else 1


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = parse_args(argv)
    if args.verbose or args.logfile:
        set_package_log_level(logging.DEBUG if args.verbose else logging.INFO, args.logfile)

    try:
        code = asyncio.run(_run(args))
    except UnpaintError as e:
        logger.error(f"Failed: {e}")
        code = 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
