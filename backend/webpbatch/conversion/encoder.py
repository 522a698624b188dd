"""Pillow-backed encode/decode primitives."""
import io
import logging

from PIL import Image

from webpbatch.config import ENCODE_EFFORT

logger = logging.getLogger("webpbatch.encoder")


def prepare_image(img: Image.Image, output_format: str = "webp") -> Image.Image:
    """Bring a decoded image into a mode the output format can store."""
    if output_format == "jpeg":
        if img.mode in ("RGBA", "LA", "P"):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if img.mode != "RGB":
            return img.convert("RGB")
        return img
    if img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if "transparency" in img.info or img.mode in ("LA", "P", "PA") else "RGB")
    return img


def encode_image(
    img: Image.Image,
    quality: int,
    output_format: str = "webp",
    effort: int = ENCODE_EFFORT,
) -> bytes:
    """Encode ``img`` at ``quality`` (0-100) and return the bytes."""
    fmt = output_format.lower()
    if fmt == "webp":
        save_kw = {"format": "WEBP", "quality": quality, "method": effort}
    elif fmt == "jpeg":
        save_kw = {"format": "JPEG", "quality": quality, "optimize": True}
    elif fmt == "avif":
        save_kw = {"format": "AVIF", "quality": quality}
    else:
        raise ValueError(f"Unsupported output format: {output_format}")
    buf = io.BytesIO()
    img.save(buf, **save_kw)
    return buf.getvalue()


def decode_metadata(data: bytes) -> dict:
    """Return ``{"width": ..., "height": ...}`` of an encoded image."""
    with Image.open(io.BytesIO(data)) as img:
        return {"width": img.width, "height": img.height}
