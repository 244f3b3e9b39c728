"""End-to-end tests for the pipeline runner, manifests, and replay determinism."""

from __future__ import annotations

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from brandsentry.errors import PersistenceError, ScopeError
from brandsentry.identity import hash_bytes
from brandsentry.pipeline import PipelineRunner, RunConfig, fixed_clock
from brandsentry.pipeline.runner import EVIDENCE_FILE, FINDINGS_FILE, MANIFEST_FILE, RAW_CAPTURE_FILE, SIGNALS_FILE
from brandsentry.scope import validate
from brandsentry.signals import DegradedSource, Disposition
from brandsentry.store import InMemoryHistory

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


class FailingHistory(InMemoryHistory):
    def record_run(self, run):
        raise PersistenceError("disk full")


def _runner(scope, settings, *, now=NOW, history=None, config=None):
    return PipelineRunner(scope, config or RunConfig(), history=history, clock=fixed_clock(now), settings=settings)


def _artifact_bytes(output_dir):
    return {path.name: path.read_bytes() for path in sorted(output_dir.iterdir())}


def test_example_scenario_alerts(example_evidence, scope, settings, tmp_path):
    result = _runner(scope, settings).run(example_evidence, tmp_path / "run")

    assert {signal.signal_type.value for signal in result.outcome.signals} == {"typosquat-domain", "new-certificate"}
    [finding] = result.outcome.findings
    assert finding.disposition == Disposition.ALERT
    assert finding.confidence == 85
    assert result.alerts == [finding]

    stats = result.manifest.stats
    assert stats.evidence_considered == 3
    assert stats.evidence_suppressed == 1
    assert stats.signals_new == 2
    assert stats.findings_by_disposition["alert"] == 1

    signals_text = (tmp_path / "run" / SIGNALS_FILE).read_text(encoding="utf-8")
    assert "careers" not in signals_text
    assert len(signals_text.splitlines()) == 2


def test_manifest_records_inputs_and_output_hashes(example_evidence, scope, settings, tmp_path):
    result = _runner(scope, settings).run(example_evidence, tmp_path / "run")
    manifest = result.manifest

    assert manifest.hash_scheme == "v1"
    assert manifest.evaluated_at == NOW
    assert manifest.run_window_start == NOW - timedelta(days=1)
    assert manifest.duration_ms == 0
    assert len(manifest.evidence_hashes) == 3
    assert [item.artifact for item in manifest.output_hashes] == [SIGNALS_FILE, FINDINGS_FILE, EVIDENCE_FILE]
    for item in manifest.output_hashes:
        assert hash_bytes((tmp_path / "run" / item.artifact).read_bytes()) == item.sha256
    on_disk = (tmp_path / "run" / MANIFEST_FILE).read_bytes()
    assert hash_bytes(on_disk) == result.manifest_sha256
    assert json.loads(on_disk)["scope_hash"] == manifest.scope_hash
    assert result.run_id.startswith("run_")


def test_replay_is_byte_identical(example_evidence, scope, settings, tmp_path):
    first = _runner(scope, settings).run(example_evidence, tmp_path / "first")
    shuffled = list(example_evidence)
    random.Random(7).shuffle(shuffled)
    second = _runner(scope, settings).run(shuffled, tmp_path / "second")

    assert _artifact_bytes(tmp_path / "first") == _artifact_bytes(tmp_path / "second")
    assert first.run_id == second.run_id
    assert first.manifest_sha256 == second.manifest_sha256


def test_second_run_marks_repeats(example_evidence, scope, settings, tmp_path):
    history = InMemoryHistory()
    _runner(scope, settings, history=history).run(example_evidence, tmp_path / "day1")
    later = _runner(scope, settings, now=NOW + timedelta(days=1), history=history).run(
        example_evidence, tmp_path / "day2"
    )

    assert later.manifest.stats.signals_repeat == 2
    assert later.manifest.stats.signals_new == 0
    assert all(signal.is_repeat for signal in later.outcome.signals)
    assert len(history.runs_in_window(NOW, NOW + timedelta(days=2))) == 2
    assert history.latest_findings() == later.outcome.findings


def test_replay_at_same_instant_ignores_its_own_history(example_evidence, scope, settings, tmp_path):
    history = InMemoryHistory()
    first = _runner(scope, settings, history=history).run(example_evidence, tmp_path / "first")
    replay = _runner(scope, settings, history=history).run(
        example_evidence, tmp_path / "replay", persist=False, replay_of=first.run_id
    )
    assert replay.manifest_sha256 == first.manifest_sha256
    assert len(history.runs_in_window(NOW - timedelta(days=1), NOW + timedelta(days=1))) == 1


def test_rescan_at_same_instant_marks_repeats_and_replays(example_evidence, scope, settings, tmp_path):
    history = InMemoryHistory()
    _runner(scope, settings, history=history).run(example_evidence, tmp_path / "first")
    second = _runner(scope, settings, history=history).run(example_evidence, tmp_path / "second")
    assert second.manifest.stats.signals_repeat == 2

    replay = _runner(scope, settings, history=history).run(
        example_evidence, tmp_path / "replay", persist=False, replay_of=second.run_id
    )
    assert replay.manifest_sha256 == second.manifest_sha256


def test_persistence_failure_keeps_artifacts(example_evidence, scope, settings, tmp_path):
    result = _runner(scope, settings, history=FailingHistory()).run(example_evidence, tmp_path / "run")
    assert result.persistence_error == "disk full"
    assert (tmp_path / "run" / MANIFEST_FILE).exists()
    assert result.outcome.findings[0].disposition == Disposition.ALERT


def test_raw_capture_only_with_store_raw(example_evidence, scope_data, settings, tmp_path):
    scope_data["privacy"] = {"store_raw": True}
    result = _runner(validate(scope_data), settings).run(example_evidence, tmp_path / "raw")
    assert (tmp_path / "raw" / RAW_CAPTURE_FILE).exists()
    assert RAW_CAPTURE_FILE in [item.artifact for item in result.manifest.output_hashes]

    _runner(validate(scope_data | {"privacy": {}}), settings).run(example_evidence, tmp_path / "redacted")
    assert not (tmp_path / "redacted" / RAW_CAPTURE_FILE).exists()


def test_degraded_sources_and_malformed_counts_reach_manifest(example_evidence, scope, settings, tmp_path):
    result = _runner(scope, settings).run(
        example_evidence,
        tmp_path / "run",
        degraded=[DegradedSource(source="ct", reason="timeout after 5s")],
        malformed=2,
    )
    assert result.manifest.degraded_sources == [DegradedSource(source="ct", reason="timeout after 5s")]
    assert result.manifest.stats.evidence_malformed == 2
    assert result.manifest.stats.evidence_considered == 5


def test_detector_selection_narrows_run(example_evidence, scope, settings, tmp_path):
    config = RunConfig(detectors=("typosquat",))
    runner = _runner(scope, settings, config=config)
    assert [detector.name for detector in runner.detector_plugins] == ["typosquat"]

    result = runner.run(example_evidence, tmp_path / "run")
    assert result.manifest.detectors_run == ["typosquat"]
    [finding] = result.outcome.findings
    assert finding.signal_types[0].value == "typosquat-domain"
    assert finding.disposition != Disposition.ALERT


def test_selection_outside_allowlist_is_fatal(scope, settings):
    with pytest.raises(ScopeError):
        _runner(scope, settings, config=RunConfig(detectors=("paste",)))


def test_resolved_selection_hashes_like_default(example_evidence, scope, settings, tmp_path):
    implicit = _runner(scope, settings).run(example_evidence, tmp_path / "implicit")
    explicit = _runner(scope, settings, config=RunConfig(detectors=scope.allowed_detectors)).run(
        example_evidence, tmp_path / "explicit"
    )
    assert implicit.manifest.config_hash == explicit.manifest.config_hash
