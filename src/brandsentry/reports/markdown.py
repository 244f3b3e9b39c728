"""Markdown run and trend reports rendered from run artifacts."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from brandsentry.reports.template_engine import TemplateEngine
from brandsentry.signals import Disposition, Finding, Manifest, Signal
from brandsentry.store.trend import TrendReport

RUN_REPORT_TEMPLATE = "run_report.md.j2"
TREND_REPORT_TEMPLATE = "trend_report.md.j2"
REPORT_FILE = "report.md"


def _by_disposition(findings: Sequence[Finding]) -> Dict[str, List[Finding]]:
    grouped: Dict[str, List[Finding]] = {disposition.value: [] for disposition in Disposition}
    for finding in findings:
        grouped[finding.disposition.value].append(finding)
    return grouped


def render_run_report(
    manifest: Manifest,
    findings: Sequence[Finding],
    signals: Sequence[Signal],
    *,
    run_id: str,
    manifest_sha256: str,
    persistence_error: Optional[str] = None,
    as_of: Optional[datetime] = None,
    engine: Optional[TemplateEngine] = None,
) -> str:
    """Render the Markdown summary of one run.

    Only run artifacts feed the report, so re-rendering a replayed run gives
    the same text. ``as_of`` is shown when findings were decayed to a later
    instant than the run itself.
    """

    engine = engine or TemplateEngine()
    return engine.render(
        RUN_REPORT_TEMPLATE,
        {
            "manifest": manifest,
            "run_id": run_id,
            "manifest_sha256": manifest_sha256,
            "grouped": _by_disposition(findings),
            "signals": list(signals),
            "persistence_error": persistence_error,
            "as_of": as_of if as_of is not None and as_of != manifest.evaluated_at else None,
        },
    )


def render_trend_report(report: TrendReport, *, engine: Optional[TemplateEngine] = None) -> str:
    engine = engine or TemplateEngine()
    dimensions: Dict[str, list] = {}
    for row in report.rows:
        dimensions.setdefault(row.dimension, []).append(row)
    return engine.render(TREND_REPORT_TEMPLATE, {"report": report, "dimensions": dimensions})


def write_report(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


__all__ = [
    "REPORT_FILE",
    "RUN_REPORT_TEMPLATE",
    "TREND_REPORT_TEMPLATE",
    "render_run_report",
    "render_trend_report",
    "write_report",
]
