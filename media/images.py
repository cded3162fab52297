"""
Image operations (Pillow).

Functions here are module-level so they can be pickled and run inside the
worker process pool.
"""

import base64
import io
import logging
import os
from dataclasses import dataclass
from typing import Tuple

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112


@dataclass(frozen=True)
class ResizeOptions:
    max_width: int = 1920
    max_height: int = 1080
    quality: int = 90


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel or palette
    return img if img.mode == "RGB" else img.convert("RGB")


def _bounded_quality(quality: int) -> int:
    return max(1, min(95, int(quality)))


def resize_image(input_path: str, output_path: str, options: ResizeOptions = ResizeOptions()) -> Tuple[int, int]:
    """
    Rotate per EXIF, fit inside the box without upscaling, re-encode as JPEG.

    ``input_path`` and ``output_path`` may be the same file.
    Returns the (width, height) written.
    """
    with Image.open(input_path) as img:
        img = ImageOps.exif_transpose(img)
        # thumbnail() only ever shrinks and keeps the aspect ratio
        img.thumbnail((options.max_width, options.max_height), Image.LANCZOS)
        img = _to_rgb(img)

        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        img.save(output_path, "JPEG", quality=_bounded_quality(options.quality), optimize=True)
        return img.size


def generate_thumbnail(input_path: str, output_path: str, size: int = 128, quality: int = 50) -> str:
    resize_image(input_path, output_path, ResizeOptions(max_width=size, max_height=size, quality=quality))
    logger.debug(f"Thumbnail written: {output_path}")
    return output_path


def get_dimensions(path: str) -> Tuple[int, int]:
    """
    Displayed (width, height) of an image.

    Stored pixels are not rotated, so orientations 5-8 (90/270 degrees)
    swap the axes.
    """
    with Image.open(path) as img:
        width, height = img.size
        orientation = img.getexif().get(EXIF_ORIENTATION_TAG, 0) or 0
    if orientation >= 5:
        return height, width
    return width, height


def resize_to_jpeg_bytes(path: str, max_width: int = 800, quality: int = 80) -> bytes:
    """Downscale to ``max_width`` and return JPEG bytes (height unbounded)."""
    with Image.open(path) as img:
        img = ImageOps.exif_transpose(img)
        if img.width > max_width:
            height = round(img.height * max_width / img.width)
            img = img.resize((max_width, max(1, height)), Image.LANCZOS)
        img = _to_rgb(img)

        buf = io.BytesIO()
        img.save(buf, "JPEG", quality=_bounded_quality(quality))
        return buf.getvalue()


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
