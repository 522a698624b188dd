from .aggregator import ResultAggregator, RunningTotals, Summary
from .models import (
    BATCH_POLICY,
    INTERACTIVE_POLICY,
    EncodeFailure,
    EncodeSuccess,
    ResizeSettings,
    SearchPolicy,
    Settings,
    Task,
)
from .scheduler import TaskScheduler
from .search import SearchResult, search

__all__ = [
    "BATCH_POLICY",
    "INTERACTIVE_POLICY",
    "EncodeFailure",
    "EncodeSuccess",
    "ResizeSettings",
    "ResultAggregator",
    "RunningTotals",
    "SearchPolicy",
    "SearchResult",
    "Settings",
    "Summary",
    "Task",
    "TaskScheduler",
    "search",
]
