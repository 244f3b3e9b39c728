"""In-memory run history, used by tests and ``--no-store`` runs."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Set, Tuple

from brandsentry.signals import Finding, Signal, ensure_utc
from brandsentry.store.base import RecordedRun, RunSummary
from brandsentry.store.trend import Observation, TrendReport, build_trend


class InMemoryHistory:
    """Dictionary-backed implementation of :class:`~brandsentry.store.base.RunHistory`."""

    def __init__(self) -> None:
        self._runs: Dict[str, RecordedRun] = {}
        self._first_seen: Dict[str, Tuple[datetime, str]] = {}

    def previous_dedupe_keys(self, before: datetime, *, exclude_run: str | None = None) -> Set[str]:
        cutoff = ensure_utc(before)
        return {
            key
            for key, (first_seen_at, run_id) in self._first_seen.items()
            if first_seen_at <= cutoff and run_id != exclude_run
        }

    def record_run(self, run: RecordedRun) -> None:
        if run.run_id in self._runs:
            return
        self._runs[run.run_id] = run
        evaluated_at = run.manifest.evaluated_at
        for signal in run.signals:
            known = self._first_seen.get(signal.dedupe_key)
            if known is None or evaluated_at < known[0]:
                self._first_seen[signal.dedupe_key] = (evaluated_at, run.run_id)

    def runs_in_window(self, start: datetime, end: datetime) -> List[RunSummary]:
        lower, upper = ensure_utc(start), ensure_utc(end)
        runs = [run for run in self._runs.values() if lower <= run.manifest.evaluated_at < upper]
        runs.sort(key=lambda run: (run.manifest.evaluated_at, run.run_id))
        return [run.summary() for run in runs]

    def purge_older_than(self, days: int, now: datetime) -> int:
        cutoff = ensure_utc(now) - timedelta(days=days)
        expired = [run_id for run_id, run in self._runs.items() if run.manifest.evaluated_at < cutoff]
        for run_id in expired:
            del self._runs[run_id]
        return len(expired)

    def latest_signals(self) -> List[Signal]:
        latest = self._latest()
        return list(latest.signals) if latest else []

    def latest_findings(self) -> List[Finding]:
        latest = self._latest()
        return list(latest.findings) if latest else []

    def trend(self, window: str, now: datetime) -> TrendReport:
        observations = [
            Observation(run.manifest.evaluated_at, signal.signal_type.value, signal.subject, signal.dedupe_key)
            for run in self._runs.values()
            for signal in run.signals
        ]
        first_seen: Dict[str, datetime] = {}
        for observation in observations:
            known = first_seen.get(observation.dedupe_key)
            if known is None or observation.evaluated_at < known:
                first_seen[observation.dedupe_key] = observation.evaluated_at
        return build_trend(observations, first_seen, now=now, window=window)

    def _latest(self) -> RecordedRun | None:
        if not self._runs:
            return None
        return max(self._runs.values(), key=lambda run: (run.manifest.evaluated_at, run.run_id))


__all__ = ["InMemoryHistory"]
