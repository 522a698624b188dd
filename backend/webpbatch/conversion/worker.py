"""Execution unit: one task end to end (decode, resize, quality search, write).

``convert_file`` runs inside a worker process. It never raises: every error is
returned as an ``EncodeFailure`` so the coordinator can count it and move on.
"""
import logging
from pathlib import Path

from PIL import Image

from webpbatch.conversion.encoder import decode_metadata, prepare_image
from webpbatch.conversion.models import EncodeFailure, EncodeOutcome, EncodeSuccess, SearchPolicy, Settings, Task
from webpbatch.conversion.resize import resize_within
from webpbatch.conversion.search import SearchResult, search

logger = logging.getLogger("webpbatch.worker")


def render(img: Image.Image, settings: Settings, policy: SearchPolicy) -> SearchResult:
    """Prepare, resize and quality-search a decoded image."""
    work = prepare_image(img, settings.output_format)
    work = resize_within(work, settings.resize)
    return search(work, settings, policy=policy)


def write_output(path: Path, data: bytes) -> int:
    """Write ``data`` to ``path`` and return the size on disk."""
    # Sibling tasks may create the same directory concurrently.
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path.stat().st_size


def convert_file(task: Task) -> EncodeOutcome:
    settings = task.settings
    try:
        original_size = task.source.stat().st_size
        with Image.open(task.source) as img:
            img.load()
            result = render(img, settings, task.policy)
        encoded_size = write_output(task.destination, result.data)
        dims = decode_metadata(result.data)
        return EncodeSuccess(
            source=task.source,
            destination=task.destination,
            original_size=original_size,
            encoded_size=encoded_size,
            quality=result.quality,
            iterations=result.iterations,
            width=dims["width"],
            height=dims["height"],
        )
    except Exception as e:
        logger.exception("Conversion failed for %s: %s", task.source, e)
        return EncodeFailure(source=task.source, error=str(e) or e.__class__.__name__)
