"""Window-over-window trend of signal observations."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from brandsentry.signals import ensure_utc

TREND_WINDOWS = {"7d": 7, "30d": 30, "90d": 90}
DIMENSIONS = ("signal_type", "subject", "dedupe_key")


class Observation(NamedTuple):
    evaluated_at: datetime
    signal_type: str
    subject: str
    dedupe_key: str


class TrendRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    dimension: str
    key: str
    current: int
    previous: int
    delta: int
    first_seen: bool = False


class TrendReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    window: str
    now: datetime
    current_start: datetime
    previous_start: datetime
    rows: List[TrendRow] = Field(default_factory=list)


def window_days(window: str) -> int:
    """Translate ``7d``/``30d``/``90d`` into days."""

    try:
        return TREND_WINDOWS[window]
    except KeyError as exc:
        raise ValueError(f"unsupported trend window {window!r}; choose one of {', '.join(TREND_WINDOWS)}") from exc


def build_trend(
    observations: Iterable[Observation],
    first_seen: Mapping[str, datetime],
    *,
    now: datetime,
    window: str,
) -> TrendReport:
    """Count observations per dimension in the current window and the equal-length window before it."""

    now = ensure_utc(now)
    span = timedelta(days=window_days(window))
    current_start = now - span
    previous_start = current_start - span

    current: Counter = Counter()
    previous: Counter = Counter()
    for observation in observations:
        evaluated_at = ensure_utc(observation.evaluated_at)
        if current_start < evaluated_at <= now:
            bucket = current
        elif previous_start < evaluated_at <= current_start:
            bucket = previous
        else:
            continue
        for dimension in DIMENSIONS:
            bucket[(dimension, getattr(observation, dimension))] += 1

    rows = []
    for dimension, key in sorted(set(current) | set(previous)):
        now_count = current[(dimension, key)]
        before_count = previous[(dimension, key)]
        if dimension == "dedupe_key" and key in first_seen:
            is_first = current_start < ensure_utc(first_seen[key]) <= now
        else:
            is_first = before_count == 0 and now_count > 0
        rows.append(
            TrendRow(
                dimension=dimension,
                key=key,
                current=now_count,
                previous=before_count,
                delta=now_count - before_count,
                first_seen=is_first,
            )
        )
    return TrendReport(window=window, now=now, current_start=current_start, previous_start=previous_start, rows=rows)


__all__ = ["Observation", "TREND_WINDOWS", "TrendReport", "TrendRow", "build_trend", "window_days"]
