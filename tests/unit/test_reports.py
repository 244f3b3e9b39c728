"""Tests for Markdown run and trend reports."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from brandsentry.pipeline import PipelineRunner, fixed_clock
from brandsentry.pipeline.runner import FINDINGS_FILE, MANIFEST_FILE, SIGNALS_FILE
from brandsentry.reports import read_jsonl, read_manifest, render_run_report, render_trend_report
from brandsentry.signals import DegradedSource, Finding, Signal
from brandsentry.store.trend import Observation, build_trend

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _result(scope, settings, evidence, output_dir, **kwargs):
    return PipelineRunner(scope, clock=fixed_clock(NOW), settings=settings).run(evidence, output_dir, **kwargs)


def test_run_report_lists_alert_with_rule_trace(scope, settings, example_evidence, tmp_path):
    result = _result(scope, settings, example_evidence, tmp_path / "run")
    text = render_run_report(
        result.manifest,
        result.outcome.findings,
        result.outcome.signals,
        run_id=result.run_id,
        manifest_sha256=result.manifest_sha256,
    )

    assert text.startswith(f"# Brand monitoring run {result.run_id}\n")
    assert "## Alert" in text
    assert "| typosquat+cert+landing |" in text
    assert result.manifest_sha256 in text
    assert "Degraded sources" not in text
    assert "careers" not in text


def test_run_report_from_artifacts_matches_in_memory(scope, settings, example_evidence, tmp_path):
    result = _result(
        scope,
        settings,
        example_evidence,
        tmp_path / "run",
        degraded=[DegradedSource(source="ct", reason="timeout after 5s")],
    )
    run_dir = tmp_path / "run"
    from_disk = render_run_report(
        read_manifest(run_dir / MANIFEST_FILE),
        read_jsonl(run_dir / FINDINGS_FILE, Finding),
        read_jsonl(run_dir / SIGNALS_FILE, Signal),
        run_id=result.run_id,
        manifest_sha256=result.manifest_sha256,
        persistence_error="disk full",
    )

    assert "- **ct**: timeout after 5s" in from_disk
    assert "> History was not updated: disk full" in from_disk


def test_trend_report_formats_signed_deltas():
    observations = [
        Observation(NOW - timedelta(days=1), "typosquat-domain", "example.com", "dk_a"),
        Observation(NOW - timedelta(days=10), "new-certificate", "example.com", "dk_b"),
    ]
    text = render_trend_report(build_trend(observations, {}, now=NOW, window="7d"))

    assert text.startswith("# Signal trend (7d)")
    assert "## By signal type" in text
    assert "| typosquat-domain | 1 | 0 | +1 | yes |" in text
    assert "| new-certificate | 0 | 1 | -1 |  |" in text


def test_empty_trend_report_says_so():
    text = render_trend_report(build_trend([], {}, now=NOW, window="30d"))
    assert "No signals recorded in either window." in text
