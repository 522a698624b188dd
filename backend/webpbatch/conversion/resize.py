"""Shrink-only resize that keeps the aspect ratio."""
import logging
from typing import Tuple

from PIL import Image

from webpbatch.conversion.models import ResizeSettings

logger = logging.getLogger("webpbatch.resize")


def fitted_size(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """
    Dimensions of (width, height) scaled to fit inside max_width x max_height.
    Images already inside the box are left alone; nothing is ever enlarged.
    """
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    new_w = max(1, int(round(width * scale)))
    new_h = max(1, int(round(height * scale)))
    return new_w, new_h


def resize_within(img: Image.Image, resize: ResizeSettings) -> Image.Image:
    if not resize.enabled:
        return img
    w, h = img.size
    new_w, new_h = fitted_size(w, h, resize.width, resize.height)
    if (new_w, new_h) == (w, h):
        return img
    logger.debug("Resizing %sx%s -> %sx%s", w, h, new_w, new_h)
    return img.resize((new_w, new_h), Image.Resampling.LANCZOS)
