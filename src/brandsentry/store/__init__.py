"""Cross-run history: the persistence collaborator of the pipeline."""

from brandsentry.store.base import RecordedRun, RunHistory, RunSummary
from brandsentry.store.memory import InMemoryHistory
from brandsentry.store.run_store import SqlRunStore
from brandsentry.store.trend import TREND_WINDOWS, TrendReport, TrendRow, build_trend

__all__ = [
    "TREND_WINDOWS",
    "InMemoryHistory",
    "RecordedRun",
    "RunHistory",
    "RunSummary",
    "SqlRunStore",
    "TrendReport",
    "TrendRow",
    "build_trend",
]
