"""Running totals over task outcomes and the end-of-run summary."""
from dataclasses import dataclass
from typing import Iterable

from webpbatch.conversion.models import EncodeOutcome, EncodeSuccess


@dataclass(frozen=True)
class RunningTotals:
    original_bytes: int = 0
    encoded_bytes: int = 0
    succeeded: int = 0
    failed: int = 0

    def merge(self, other: "RunningTotals") -> "RunningTotals":
        return RunningTotals(
            original_bytes=self.original_bytes + other.original_bytes,
            encoded_bytes=self.encoded_bytes + other.encoded_bytes,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
        )

    @classmethod
    def of(cls, outcome: EncodeOutcome) -> "RunningTotals":
        if isinstance(outcome, EncodeSuccess):
            return cls(outcome.original_size, outcome.encoded_size, succeeded=1)
        return cls(failed=1)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed


@dataclass(frozen=True)
class Summary:
    total: int
    succeeded: int
    failed: int
    original_bytes: int
    encoded_bytes: int
    elapsed: float  # seconds

    @property
    def saved_bytes(self) -> int:
        return self.original_bytes - self.encoded_bytes

    @property
    def percent_saved(self) -> float:
        if self.original_bytes == 0:
            return 0.0
        return 100.0 * (1 - self.encoded_bytes / self.original_bytes)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "original_bytes": self.original_bytes,
            "encoded_bytes": self.encoded_bytes,
            "saved_bytes": self.saved_bytes,
            "percent_saved": round(self.percent_saved, 2),
            "elapsed": round(self.elapsed, 3),
        }


def summarize(totals: RunningTotals, elapsed: float) -> Summary:
    return Summary(
        total=totals.processed,
        succeeded=totals.succeeded,
        failed=totals.failed,
        original_bytes=totals.original_bytes,
        encoded_bytes=totals.encoded_bytes,
        elapsed=elapsed,
    )


class ResultAggregator:
    """Folds outcomes one at a time. Only the coordinating loop may call ``fold``."""

    def __init__(self):
        self.totals = RunningTotals()

    def fold(self, outcome: EncodeOutcome) -> RunningTotals:
        self.totals = self.totals.merge(RunningTotals.of(outcome))
        return self.totals

    def fold_all(self, outcomes: Iterable[EncodeOutcome]) -> RunningTotals:
        for outcome in outcomes:
            self.fold(outcome)
        return self.totals

    def summarize(self, elapsed: float) -> Summary:
        return summarize(self.totals, elapsed)
