"""Conversion settings, tasks and outcomes.

Everything here is a frozen dataclass: a ``Task`` is pickled into a worker
process and its outcome pickled back, so neither side can mutate state the
other one sees.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

KB = 1024


class TaskStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SupportedFormats:
    IMAGE = ["webp", "jpeg", "avif"]
    EXTENSIONS = {"webp": ".webp", "jpeg": ".jpg", "avif": ".avif"}


@dataclass(frozen=True)
class ResizeSettings:
    """Shrink-only fit inside width x height, keeping the aspect ratio."""

    enabled: bool = False
    width: int = 1200
    height: int = 630

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"resize dimensions must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class Settings:
    quality: int = 80
    min_quality: int = 80
    target_size_kb: Optional[float] = None
    resize: ResizeSettings = field(default_factory=ResizeSettings)
    output_format: str = "webp"

    def __post_init__(self):
        for name in ("quality", "min_quality"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be within 0-100, got {value}")
        if self.min_quality > self.quality:
            raise ValueError(f"min_quality ({self.min_quality}) must not exceed quality ({self.quality})")
        if self.target_size_kb is not None and self.target_size_kb <= 0:
            raise ValueError(f"target_size_kb must be positive, got {self.target_size_kb}")
        if self.output_format not in SupportedFormats.IMAGE:
            raise ValueError(f"Unsupported output format: {self.output_format}")

    @property
    def extension(self) -> str:
        return SupportedFormats.EXTENSIONS[self.output_format]


@dataclass(frozen=True)
class SearchPolicy:
    """Convergence limits for the quality search.

    size_epsilon_kb: stop once the last encode is this close to the target (None disables).
    quality_epsilon: stop once the quality window is this narrow.
    """

    max_iterations: int = 5
    size_epsilon_kb: Optional[float] = 1.0
    quality_epsilon: int = 1

    def __post_init__(self):
        if self.max_iterations < 0:
            raise ValueError("max_iterations must not be negative")
        if self.quality_epsilon < 1:
            raise ValueError("quality_epsilon must be at least 1")


BATCH_POLICY = SearchPolicy(max_iterations=5, size_epsilon_kb=1.0, quality_epsilon=1)
# Interactive conversions search a little longer and only stop on quality granularity.
INTERACTIVE_POLICY = SearchPolicy(max_iterations=7, size_epsilon_kb=None, quality_epsilon=1)


@dataclass(frozen=True)
class Task:
    source: Path
    destination: Path
    settings: Settings
    policy: SearchPolicy = BATCH_POLICY


@dataclass(frozen=True)
class EncodeSuccess:
    source: Path
    destination: Path
    original_size: int  # bytes
    encoded_size: int  # bytes
    quality: int
    iterations: int = 0
    width: Optional[int] = None
    height: Optional[int] = None

    ok = True

    @property
    def compression_ratio(self) -> float:
        if self.encoded_size == 0:
            return 0.0
        return self.original_size / self.encoded_size


@dataclass(frozen=True)
class EncodeFailure:
    source: Path
    error: str

    ok = False


EncodeOutcome = Union[EncodeSuccess, EncodeFailure]
