"""API routes for interactive conversion of uploaded images."""
import io
import logging
import time
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from PIL import Image

from webpbatch import config as app_config
from webpbatch.config import IMAGE_EXTENSIONS, MAX_IMAGE_SIZE_BYTES, MAX_IMAGES_PER_UPLOAD
from webpbatch.conversion.aggregator import ResultAggregator
from webpbatch.conversion.encoder import decode_metadata
from webpbatch.conversion.models import (
    INTERACTIVE_POLICY,
    EncodeFailure,
    EncodeSuccess,
    ResizeSettings,
    Settings,
    SupportedFormats,
    TaskStatus,
)
from webpbatch.conversion.worker import render, write_output
from webpbatch.errors import ConfigError, ConfigNotFoundError
from webpbatch.presets import list_config_names, load_config

logger = logging.getLogger("webpbatch.api")
router = APIRouter(prefix="/api", tags=["converter"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/limits")
def get_limits():
    """Return upload limits for the client."""
    return {
        "max_images_per_upload": MAX_IMAGES_PER_UPLOAD,
        "max_image_size_mb": MAX_IMAGE_SIZE_BYTES // (1024 * 1024),
        "max_image_size_bytes": MAX_IMAGE_SIZE_BYTES,
    }


def _settings_to_dict(settings: Settings) -> dict:
    return {
        "quality": settings.quality,
        "min_quality": settings.min_quality,
        "target_size_kb": settings.target_size_kb,
        "resize_enabled": settings.resize.enabled,
        "max_width": settings.resize.width,
        "max_height": settings.resize.height,
        "format": settings.output_format,
    }


@router.get("/presets")
def get_presets():
    """Named configs usable as ``preset`` in /convert (name -> settings)."""
    presets = {}
    for name in list_config_names():
        try:
            cfg = load_config(name)
        except ConfigError as e:
            logger.warning("Skipping preset %s: %s", name, e)
            continue
        presets[name] = {"description": cfg.description, **_settings_to_dict(cfg.settings)}
    return presets


def _resolve_settings(
    preset: str,
    quality: Optional[int],
    min_quality: Optional[int],
    target_size_kb: Optional[float],
    resize_enabled: Optional[bool],
    max_width: Optional[int],
    max_height: Optional[int],
    output_format: Optional[str],
) -> Settings:
    """Start from a preset (or defaults) and apply explicit overrides."""
    if preset:
        try:
            base = load_config(preset).settings
        except ConfigNotFoundError:
            raise HTTPException(404, f"Unknown preset: {preset}")
        except ConfigError as e:
            raise HTTPException(500, str(e))
    else:
        base = Settings(quality=app_config.DEFAULT_QUALITY, min_quality=app_config.DEFAULT_QUALITY)

    q = base.quality if quality is None else quality
    if min_quality is not None:
        mq = min_quality
    elif quality is not None and not preset:
        mq = q
    else:
        mq = base.min_quality
    target = base.target_size_kb if target_size_kb is None else target_size_kb
    resize = ResizeSettings(
        enabled=base.resize.enabled if resize_enabled is None else resize_enabled,
        width=max_width or base.resize.width,
        height=max_height or base.resize.height,
    )
    fmt = (output_format or base.output_format).lower()
    if fmt not in SupportedFormats.IMAGE:
        raise HTTPException(400, f"Unsupported output format: {fmt}")
    return replace(
        base,
        quality=q,
        min_quality=min(mq, q),
        target_size_kb=target,
        resize=resize,
        output_format=fmt,
    )


def _convert_upload(filename: str, data: bytes, settings: Settings):
    """Convert one uploaded image into OUTPUT_DIR. Returns an outcome, never raises."""
    source = Path(filename)
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            result = render(img, settings, INTERACTIVE_POLICY)
        out_name = f"{source.stem}_{uuid.uuid4().hex[:8]}{settings.extension}"
        destination = app_config.OUTPUT_DIR / out_name
        encoded_size = write_output(destination, result.data)
        dims = decode_metadata(result.data)
        logger.info("Converted %s -> %s (quality %s)", filename, out_name, result.quality)
        return EncodeSuccess(
            source=source,
            destination=destination,
            original_size=len(data),
            encoded_size=encoded_size,
            quality=result.quality,
            iterations=result.iterations,
            width=dims["width"],
            height=dims["height"],
        )
    except Exception as e:
        logger.exception("Image conversion failed for %s: %s", filename, e)
        return EncodeFailure(source=source, error=str(e) or e.__class__.__name__)


def _outcome_to_dict(outcome) -> dict:
    if isinstance(outcome, EncodeSuccess):
        return {
            "filename": outcome.source.name,
            "status": TaskStatus.COMPLETED.value,
            "output_path": outcome.destination.name,
            "input_size": outcome.original_size,
            "output_size": outcome.encoded_size,
            "quality": outcome.quality,
            "width": outcome.width,
            "height": outcome.height,
            "compression_ratio": round(outcome.compression_ratio, 3),
        }
    return {
        "filename": outcome.source.name,
        "status": TaskStatus.FAILED.value,
        "error": outcome.error,
    }


@router.post("/convert")
async def convert_images(
    files: list[UploadFile] = File(...),
    preset: str = Query("", description="Named config to start from, see /api/presets"),
    quality: Optional[int] = Query(None, ge=0, le=100),
    min_quality: Optional[int] = Query(None, ge=0, le=100),
    target_size_kb: Optional[float] = Query(None, gt=0),
    resize_enabled: Optional[bool] = Query(None),
    max_width: Optional[int] = Query(None, ge=1),
    max_height: Optional[int] = Query(None, ge=1),
    output_format: Optional[str] = Query(None, alias="format", description="webp | jpeg | avif"),
):
    """Convert uploaded images one after another and report each result.

    A file that cannot be converted is reported as failed; the others still run.
    """
    settings = _resolve_settings(
        preset.strip(), quality, min_quality, target_size_kb,
        resize_enabled, max_width, max_height, output_format,
    )
    to_convert = [f for f in files if Path(f.filename or "").suffix.lower() in IMAGE_EXTENSIONS]
    if not to_convert:
        raise HTTPException(400, "No valid files uploaded")
    if len(to_convert) > MAX_IMAGES_PER_UPLOAD:
        raise HTTPException(400, f"Max {MAX_IMAGES_PER_UPLOAD} images per upload (max {MAX_IMAGE_SIZE_BYTES // (1024*1024)} MB each)")

    start = time.monotonic()
    aggregator = ResultAggregator()
    results = []
    for file in to_convert:
        buf = io.BytesIO()
        total = 0
        while chunk := await file.read(1024 * 1024):
            total += len(chunk)
            if total > MAX_IMAGE_SIZE_BYTES:
                raise HTTPException(413, f"File too large: {file.filename} (max {MAX_IMAGE_SIZE_BYTES // (1024*1024)} MB)")
            buf.write(chunk)
        outcome = await run_in_threadpool(_convert_upload, file.filename, buf.getvalue(), settings)
        aggregator.fold(outcome)
        results.append(_outcome_to_dict(outcome))

    summary = aggregator.summarize(time.monotonic() - start)
    return {
        "settings": _settings_to_dict(settings),
        "results": results,
        "summary": summary.to_dict(),
    }


@router.get("/download/{filename}")
def download_output(filename: str):
    """Download a converted file by name."""
    if Path(filename).name != filename:
        raise HTTPException(400, "Invalid filename")
    path = app_config.OUTPUT_DIR / filename
    if not path.is_file():
        raise HTTPException(404, "File not found")
    return FileResponse(path, filename=filename)
