"""Run artifacts and human-readable reports."""

from brandsentry.reports.markdown import REPORT_FILE, render_run_report, render_trend_report, write_report
from brandsentry.reports.template_engine import TemplateEngine
from brandsentry.reports.writer import jsonl_bytes, manifest_bytes, read_jsonl, read_manifest, write_artifact

__all__ = [
    "REPORT_FILE",
    "TemplateEngine",
    "jsonl_bytes",
    "manifest_bytes",
    "read_jsonl",
    "read_manifest",
    "render_run_report",
    "render_trend_report",
    "write_artifact",
    "write_report",
]
