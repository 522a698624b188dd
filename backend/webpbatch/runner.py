"""One batch run: enumerate a source tree, convert it in parallel, report."""
import logging
import os
import time
from pathlib import Path
from typing import Iterable, Optional

from webpbatch.conversion.aggregator import ResultAggregator, Summary
from webpbatch.conversion.models import KB, EncodeOutcome, EncodeSuccess, Task
from webpbatch.conversion.scheduler import ExecutorFactory, TaskScheduler
from webpbatch.errors import OutputDirError, SourceNotFoundError, SourceUnreadableError
from webpbatch.presets import ConversionConfig

logger = logging.getLogger("webpbatch.runner")


def find_images(root: Path, extensions: Iterable[str], exclude: Iterable[Path] = ()) -> list[Path]:
    """Recursively find files under ``root`` whose suffix is in ``extensions``."""
    wanted = {e.lower() for e in extensions}
    excluded = [p.resolve() for p in exclude]
    images = []
    for path in root.rglob("*"):
        if not path.is_file() or path.suffix.lower() not in wanted:
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(d) for d in excluded):
            continue
        images.append(path)
    return sorted(images)


def output_path_for(source: Path, source_root: Path, output_root: Path, extension: str) -> Path:
    """Mirror ``source``'s position under ``source_root`` into ``output_root``."""
    relative = source.relative_to(source_root)
    return output_root / relative.with_suffix(extension)


def build_tasks(cfg: ConversionConfig) -> list[Task]:
    root = cfg.source_dir
    if not root.is_dir():
        raise SourceNotFoundError(root)
    # rglob silently skips directories it cannot list, so check the root first.
    try:
        with os.scandir(root):
            pass
        # Output nested inside the source tree must not be picked up as input.
        images = find_images(root, cfg.extensions, exclude=[cfg.output_dir])
    except OSError as e:
        raise SourceUnreadableError(root, e.strerror or e) from e
    return [
        Task(
            source=path,
            destination=output_path_for(path, root, cfg.output_dir, cfg.settings.extension),
            settings=cfg.settings,
            policy=cfg.policy,
        )
        for path in images
    ]


def report_outcome(position: int, total: int, outcome: EncodeOutcome) -> None:
    if isinstance(outcome, EncodeSuccess):
        logger.info(
            "[%s/%s] Converted: %s (%.2f KB -> %.2f KB, Quality: %s, Ratio: %.2fx)",
            position, total, outcome.source,
            outcome.original_size / KB, outcome.encoded_size / KB,
            outcome.quality, outcome.compression_ratio,
        )
    else:
        logger.error("[%s/%s] Error converting %s: %s", position, total, outcome.source, outcome.error)


def log_summary(summary: Summary) -> None:
    logger.info("Conversion completed!")
    logger.info("Successfully converted: %s files", summary.succeeded)
    logger.info("Failed to convert: %s files", summary.failed)
    logger.info("Total original size: %.2f MB", summary.original_bytes / KB / KB)
    logger.info("Total new size: %.2f MB", summary.encoded_bytes / KB / KB)
    logger.info(
        "Space saved: %.2f MB (%.2f%%)",
        summary.saved_bytes / KB / KB, summary.percent_saved,
    )
    logger.info("Time taken: %.2f seconds", summary.elapsed)


def run_config(
    cfg: ConversionConfig,
    concurrency: Optional[int] = None,
    executor_factory: Optional[ExecutorFactory] = None,
) -> Summary:
    """Convert every image of ``cfg``.

    Raises RunAbortedError when the source root is missing or unreadable, or the
    output directory cannot be created.
    """
    start = time.monotonic()
    tasks = build_tasks(cfg)
    aggregator = ResultAggregator()
    if not tasks:
        logger.info("No image files found in %s", cfg.source_dir)
        return aggregator.summarize(time.monotonic() - start)

    workers = concurrency or cfg.concurrency
    logger.info("Found %s image files to convert (%s workers).", len(tasks), workers)
    try:
        cfg.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirError(cfg.output_dir, e.strerror or e) from e

    scheduler = TaskScheduler(concurrency=workers, executor_factory=executor_factory)
    for outcome in scheduler.run(tasks):
        totals = aggregator.fold(outcome)
        report_outcome(totals.processed, len(tasks), outcome)

    summary = aggregator.summarize(time.monotonic() - start)
    log_summary(summary)
    return summary
