"""Tests for the SQLAlchemy-backed run history."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from brandsentry.errors import PersistenceError
from brandsentry.pipeline import PipelineRunner, fixed_clock
from brandsentry.settings import Settings
from brandsentry.store import RecordedRun, SqlRunStore
from brandsentry.store.sql import session_factory

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.fixture
def store(settings):
    return SqlRunStore(session_factory=session_factory(settings=settings))


def _run(scope, settings, store, evidence, output_dir, *, now=NOW):
    runner = PipelineRunner(scope, history=store, clock=fixed_clock(now), settings=settings)
    return runner.run(evidence, output_dir)


def test_record_run_persists_signals_and_findings(store, scope, settings, example_evidence, tmp_path):
    result = _run(scope, settings, store, example_evidence, tmp_path / "run")

    assert result.persistence_error is None
    assert store.latest_signals() == result.outcome.signals
    assert store.latest_findings() == result.outcome.findings

    [summary] = store.runs_in_window(NOW - timedelta(days=1), NOW + timedelta(seconds=1))
    assert summary.run_id == result.run_id
    assert summary.manifest_sha256 == result.manifest_sha256
    assert summary.signals_new == 2
    assert summary.findings_by_disposition["alert"] == 1


def test_previous_dedupe_keys_include_same_instant(store, scope, settings, example_evidence, tmp_path):
    result = _run(scope, settings, store, example_evidence, tmp_path / "run")
    keys = {signal.dedupe_key for signal in result.outcome.signals}

    assert store.previous_dedupe_keys(NOW - timedelta(microseconds=1)) == set()
    assert store.previous_dedupe_keys(NOW) == keys
    assert store.previous_dedupe_keys(NOW, exclude_run=result.run_id) == set()


def test_rescan_at_pinned_instant_sees_repeats(store, scope, settings, example_evidence, tmp_path):
    first = _run(scope, settings, store, example_evidence, tmp_path / "first")
    second = _run(scope, settings, store, example_evidence, tmp_path / "second")

    assert second.persistence_error is None
    assert second.manifest.stats.signals_new == 0
    assert second.manifest.stats.signals_repeat == 2
    assert second.run_id != first.run_id
    assert len(store.runs_in_window(NOW, NOW + timedelta(seconds=1))) == 2


def test_recording_same_run_twice_is_a_no_op(store, scope, settings, example_evidence, tmp_path):
    result = _run(scope, settings, store, example_evidence, tmp_path / "run")
    store.record_run(
        RecordedRun(
            run_id=result.run_id,
            manifest=result.manifest,
            manifest_sha256=result.manifest_sha256,
            signals=result.outcome.signals,
            findings=result.outcome.findings,
        )
    )

    [summary] = store.runs_in_window(NOW, NOW + timedelta(seconds=1))
    assert summary.run_id == result.run_id
    assert store.latest_signals() == result.outcome.signals


def test_second_day_sees_repeats(store, scope, settings, example_evidence, tmp_path):
    _run(scope, settings, store, example_evidence, tmp_path / "day1")
    later = _run(scope, settings, store, example_evidence, tmp_path / "day2", now=NOW + timedelta(days=1))

    assert later.manifest.stats.signals_repeat == 2
    assert len(store.runs_in_window(NOW, NOW + timedelta(days=2))) == 2
    assert len(store.runs_in_window(NOW + timedelta(days=1), NOW + timedelta(days=2))) == 1


def test_empty_store_has_no_latest(store):
    assert store.latest_signals() == []
    assert store.latest_findings() == []
    assert store.runs_in_window(NOW - timedelta(days=30), NOW) == []


def test_purge_removes_old_runs_but_keeps_dedupe_history(store, scope, settings, example_evidence, tmp_path):
    first = _run(scope, settings, store, example_evidence, tmp_path / "old")
    keys = {signal.dedupe_key for signal in first.outcome.signals}

    removed = store.purge_older_than(30, NOW + timedelta(days=31))

    assert removed == 1
    assert store.runs_in_window(NOW - timedelta(days=1), NOW + timedelta(days=40)) == []
    assert store.latest_findings() == []
    assert store.previous_dedupe_keys(NOW + timedelta(days=31)) == keys


def test_trend_counts_current_and_previous_windows(store, scope, settings, example_evidence, tmp_path):
    _run(scope, settings, store, example_evidence, tmp_path / "early", now=NOW - timedelta(days=8))
    _run(scope, settings, store, example_evidence, tmp_path / "late", now=NOW)

    report = store.trend("7d", NOW)
    rows = {(row.dimension, row.key): row for row in report.rows}

    typosquat = rows[("signal_type", "typosquat-domain")]
    assert (typosquat.current, typosquat.previous, typosquat.delta) == (1, 1, 0)
    assert not typosquat.first_seen
    assert rows[("subject", "example.com")].current == 2


def test_unwritable_path_raises_persistence_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    settings = Settings(storage={"sqlite_path": blocker / "history.db"})

    with pytest.raises(PersistenceError):
        SqlRunStore(settings=settings)
