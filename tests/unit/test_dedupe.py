"""Tests for cross-run deduplication against run history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from brandsentry.normalization import normalize_batch
from brandsentry.pipeline import RunWindow, build, dedupe
from brandsentry.pipeline.dedupe import collapse
from brandsentry.store import InMemoryHistory, RecordedRun

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _record(history, signals, evaluated_at, scope):
    manifest = build(
        RunWindow(evaluated_at - timedelta(days=1), evaluated_at),
        scope,
        {"window_days": 1},
        scope.allowed_detectors,
        [],
        [],
        evaluated_at=evaluated_at,
        started_at=evaluated_at,
        finished_at=evaluated_at,
    )
    history.record_run(RecordedRun(run_id=f"run_{evaluated_at:%Y%m%d}", manifest=manifest, manifest_sha256="0" * 64, signals=signals))


def test_first_run_marks_everything_new(example_evidence, scope):
    signals = normalize_batch(example_evidence, scope).signals
    result = dedupe(signals, InMemoryHistory().previous_dedupe_keys(NOW))
    assert len(result.new) == 2
    assert result.repeats == []


def test_signals_seen_in_earlier_runs_are_repeats(example_evidence, scope):
    signals = normalize_batch(example_evidence, scope).signals
    history = InMemoryHistory()
    _record(history, signals, NOW - timedelta(days=1), scope)

    result = dedupe(signals, history.previous_dedupe_keys(NOW))
    assert result.new == []
    assert {signal.id for signal in result.repeats} == {signal.id for signal in signals}
    assert all(signal.is_repeat for signal in result.all)


def test_history_at_same_instant_counts_as_seen(example_evidence, scope):
    signals = normalize_batch(example_evidence, scope).signals
    history = InMemoryHistory()
    _record(history, signals, NOW, scope)

    assert len(history.previous_dedupe_keys(NOW)) == 2
    assert history.previous_dedupe_keys(NOW - timedelta(seconds=1)) == set()
    assert history.previous_dedupe_keys(NOW, exclude_run=f"run_{NOW:%Y%m%d}") == set()


def test_collapse_keeps_one_signal_per_id(make_raw, scope):
    raw = make_raw()
    signals = normalize_batch([raw, raw], scope).signals
    assert len(collapse(signals)) == 1
