"""Screenshot post-processing: keep JPEGs under the vision-model pixel limit."""
from __future__ import annotations

import io
import logging

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 7500


def fit_dimensions(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if height > width:
        return max(1, round(width / height * max_dimension)), max_dimension
    return max_dimension, max(1, round(height / width * max_dimension))


def resize_if_needed(image_bytes: bytes, *, quality: int = 70, max_dimension: int = MAX_IMAGE_DIMENSION) -> bytes:
    """Downscale to ``max_dimension`` on the longest side, preserving aspect ratio.

    Returns the input unchanged when it already fits or cannot be decoded.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            target = fit_dimensions(width, height, max_dimension)
            if target == (width, height):
                return image_bytes

            logger.info("resizing screenshot from %sx%s to %sx%s", width, height, *target)
            resized = img.convert("RGB").resize(target, Image.LANCZOS)
            buf = io.BytesIO()
            resized.save(buf, format="JPEG", quality=max(0, min(100, quality)), optimize=True)
            return buf.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.error("screenshot resize failed, keeping original: %s", exc)
        return image_bytes
