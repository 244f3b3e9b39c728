"""Command-line entry point: scan, replay, report, and trend."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from brandsentry.alerts import WebhookDispatcher
from brandsentry.collection import Collector, default_adapters
from brandsentry.errors import AlertError, BrandSentryError, HashingError, PersistenceError, ScopeError
from brandsentry.identity import hash_file, run_id_for
from brandsentry.observability import configure_logging
from brandsentry.pipeline import (
    MANIFEST_FILE,
    PipelineRunner,
    RunConfig,
    RunResult,
    decay_findings,
    fixed_clock,
    system_clock,
)
from brandsentry.pipeline.runner import FINDINGS_FILE, SIGNALS_FILE
from brandsentry.reports import (
    REPORT_FILE,
    read_jsonl,
    read_manifest,
    render_run_report,
    render_trend_report,
    write_report,
)
from brandsentry.scope import DecayPolicy, Scope, read_scope_file, resolve_scope
from brandsentry.settings import Settings, get_settings
from brandsentry.signals import Finding, Manifest, Signal, ensure_utc
from brandsentry.store import TREND_WINDOWS, SqlRunStore

LOGGER = logging.getLogger("brandsentry.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_PRECONDITION = 2
EXIT_PERSISTENCE = 3


def _timestamp(value: str) -> datetime:
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 timestamp: {value!r}") from exc


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brandsentry",
        description="Scope-bounded brand monitoring: deterministic signals, findings, and run manifests",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    commands = parser.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="Collect evidence and run the pipeline")
    scan.add_argument("--scope", type=Path, default=None, help="Client scope TOML file")
    scan.add_argument("--demo", action="store_true", help="Run with the demo safety floor")
    scan.add_argument("--now", type=_timestamp, default=None, help="Pin the run clock (ISO-8601)")
    scan.add_argument("--no-network", action="store_true", help="Refuse every source that needs network access")
    scan.add_argument("--no-store", action="store_true", help="Do not read or write run history")
    scan.add_argument("--fixture", type=Path, default=None, help="Replay raw evidence from a JSONL fixture")
    scan.add_argument("--detectors", type=_csv, default=None, help="Comma-separated detector subset")
    scan.add_argument("--sources", type=_csv, default=None, help="Comma-separated source subset")
    scan.add_argument("--window-days", type=int, default=1, help="Run window length in days (default: 1)")
    scan.add_argument("--output-dir", type=Path, default=None, help="Directory for run artifacts")
    scan.add_argument("--alert", action="store_true", help="POST Alert findings to the configured webhook")
    scan.add_argument("--webhook-url", default=None, help="Override alerts.webhook_url")

    replay = commands.add_parser("replay", help="Re-run a recorded run and verify its hashes")
    replay.add_argument("--manifest", type=Path, required=True, help="manifest.json of the run to replay")
    replay.add_argument("--scope", type=Path, default=None, help="Client scope TOML file")
    replay.add_argument("--fixture", type=Path, default=None, help="Raw evidence JSONL used by the run")
    replay.add_argument("--no-store", action="store_true", help="Ignore run history when deduplicating")
    replay.add_argument("--output-dir", type=Path, default=None, help="Directory for replayed artifacts")

    report = commands.add_parser("report", help="Render the Markdown report of a finished run")
    report.add_argument("--run-dir", type=Path, required=True, help="Directory holding the run artifacts")
    report.add_argument("--scope", type=Path, default=None, help="Client scope TOML file supplying the decay policy")
    report.add_argument("--now", type=_timestamp, default=None, help="Decay findings as of this instant (ISO-8601)")
    report.add_argument("--output", type=Path, default=None, help="Write the report here instead of stdout")

    trend = commands.add_parser("trend", help="Compare signal counts with the previous window")
    trend.add_argument("--window", choices=sorted(TREND_WINDOWS), default="7d")
    trend.add_argument("--now", type=_timestamp, default=None, help="End of the current window (ISO-8601)")
    trend.add_argument("--output", type=Path, default=None, help="Write the report here instead of stdout")
    return parser


def _load_scope(path: Optional[Path], *, demo: bool) -> Scope:
    return resolve_scope(read_scope_file(path) if path else None, demo=demo)


def _open_history(settings: Settings, *, disabled: bool) -> tuple[Optional[SqlRunStore], Optional[str]]:
    if disabled or not settings.storage.enabled:
        return None, None
    try:
        return SqlRunStore(settings=settings), None
    except PersistenceError as exc:
        LOGGER.error("Run history unavailable, continuing without it: %s", exc)
        return None, str(exc)


def _clock(now: Optional[datetime], settings: Settings):
    pinned = now or settings.runtime.fixed_time
    return fixed_clock(pinned) if pinned else system_clock


def _write_run_report(result: RunResult) -> Path:
    text = render_run_report(
        result.manifest,
        result.outcome.findings,
        result.outcome.signals,
        run_id=result.run_id,
        manifest_sha256=result.manifest_sha256,
        persistence_error=result.persistence_error,
    )
    return write_report(result.output_dir / REPORT_FILE, text)


def _print_summary(result: RunResult) -> None:
    stats = result.manifest.stats
    dispositions = " ".join(f"{key}={value}" for key, value in stats.findings_by_disposition.items())
    print(
        f"run_id={result.run_id} signals={stats.signals_total} new={stats.signals_new} "
        f"findings={stats.findings_total} {dispositions}"
    )
    print(f"manifest={result.output_dir / MANIFEST_FILE} sha256={result.manifest_sha256}")
    for item in result.manifest.degraded_sources:
        print(f"degraded source {item.source}: {item.reason}")


def run_scan(args: argparse.Namespace, settings: Settings) -> int:
    scope = _load_scope(args.scope, demo=args.demo)
    config = RunConfig(
        demo=scope.demo,
        detectors=tuple(args.detectors) if args.detectors is not None else None,
        sources=tuple(args.sources) if args.sources is not None else None,
        window_days=args.window_days,
        no_network=args.no_network,
    )
    history, history_error = _open_history(settings, disabled=args.no_store)
    runner = PipelineRunner(scope, config, history=history, clock=_clock(args.now, settings), settings=settings)

    window = runner.window(ensure_utc(runner.clock()))
    adapters = default_adapters(scope, detectors=runner.detectors, sources=runner.sources, fixture=args.fixture)
    collected = Collector(
        scope, adapters, sources=runner.sources, no_network=args.no_network, settings=settings
    ).collect(window)

    output_dir = args.output_dir or settings.pipeline.output_dir
    result = runner.run(
        collected.evidence,
        output_dir,
        degraded=collected.degraded,
        malformed=collected.malformed,
        persist=history is not None,
    )
    if history_error and not result.persistence_error:
        result.persistence_error = history_error
    _write_run_report(result)
    _print_summary(result)

    exit_code = EXIT_OK
    if args.alert:
        try:
            sent = WebhookDispatcher(args.webhook_url, settings=settings).dispatch(
                result.outcome.findings, run_id=result.run_id, manifest_sha256=result.manifest_sha256
            )
            print(f"alerts sent={len(sent)}")
        except AlertError as exc:
            LOGGER.error("Alert dispatch failed: %s", exc)
            exit_code = EXIT_FAILURE
    if result.persistence_error:
        print(f"history not updated: {result.persistence_error}", file=sys.stderr)
        return EXIT_PERSISTENCE
    return exit_code


def _replay_mismatches(prior: Manifest, prior_sha256: str, result: RunResult) -> List[str]:
    mismatches = []
    if prior.evidence_hashes != result.manifest.evidence_hashes:
        mismatches.append("evidence hashes differ")
    recorded = {item.artifact: item.sha256 for item in prior.output_hashes}
    replayed = {item.artifact: item.sha256 for item in result.manifest.output_hashes}
    for artifact in sorted(set(recorded) | set(replayed)):
        if recorded.get(artifact) != replayed.get(artifact):
            mismatches.append(f"{artifact} hash differs")
    if prior_sha256 != result.manifest_sha256:
        mismatches.append("manifest hash differs")
    return mismatches


def run_replay(args: argparse.Namespace, settings: Settings) -> int:
    prior = read_manifest(args.manifest)
    prior_sha256 = hash_file(args.manifest)
    scope = _load_scope(args.scope, demo=prior.demo_mode)
    window_days = max(1, (prior.run_window_end - prior.run_window_start).days)
    config = RunConfig(demo=prior.demo_mode, detectors=tuple(prior.detectors_run), window_days=window_days)
    history, _ = _open_history(settings, disabled=args.no_store)
    runner = PipelineRunner(scope, config, history=history, clock=fixed_clock(prior.evaluated_at), settings=settings)

    window = runner.window(prior.evaluated_at)
    adapters = default_adapters(scope, detectors=runner.detectors, sources=runner.sources, fixture=args.fixture)
    collected = Collector(scope, adapters, sources=runner.sources, no_network=True, settings=settings).collect(window)

    output_dir = args.output_dir or args.manifest.parent / "replay"
    result = runner.run(
        collected.evidence,
        output_dir,
        degraded=prior.degraded_sources,
        malformed=collected.malformed,
        persist=False,
        build_id=prior.build_id,
        tool_version=prior.tool_version,
        replay_of=run_id_for(prior),
    )
    _write_run_report(result)
    _print_summary(result)

    mismatches = _replay_mismatches(prior, prior_sha256, result)
    if mismatches:
        print("❌ Replay diverged from the recorded run:")
        for message in mismatches:
            print(f"  - {message}")
        return EXIT_FAILURE
    print(f"✅ Replay reproduced run {result.run_id}")
    return EXIT_OK


def _emit(text: str, output: Optional[Path]) -> None:
    if output is None:
        sys.stdout.write(text)
    else:
        write_report(output, text)
        print(f"wrote {output}")


def run_report(args: argparse.Namespace, settings: Settings) -> int:
    manifest_path = args.run_dir / MANIFEST_FILE
    try:
        manifest = read_manifest(manifest_path)
        findings = read_jsonl(args.run_dir / FINDINGS_FILE, Finding)
        signals = read_jsonl(args.run_dir / SIGNALS_FILE, Signal)
    except FileNotFoundError as exc:
        raise BrandSentryError(f"run artifacts missing: {exc.filename}") from exc
    policy = _load_scope(args.scope, demo=manifest.demo_mode).policy.decay if args.scope else DecayPolicy()
    now = ensure_utc(args.now or settings.runtime.fixed_time or system_clock())
    text = render_run_report(
        manifest,
        decay_findings(findings, policy, now),
        signals,
        run_id=run_id_for(manifest),
        manifest_sha256=hash_file(manifest_path),
        as_of=now,
    )
    _emit(text, args.output)
    return EXIT_OK


def run_trend(args: argparse.Namespace, settings: Settings) -> int:
    store = SqlRunStore(settings=settings)
    now = args.now or settings.runtime.fixed_time or system_clock()
    _emit(render_trend_report(store.trend(args.window, now)), args.output)
    return EXIT_OK


COMMANDS = {
    "scan": run_scan,
    "replay": run_replay,
    "report": run_report,
    "trend": run_trend,
}


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        0 on success, 2 when a precondition (scope, hashing) is violated,
        3 when artifacts were written but history could not be updated, and
        1 for any other failure.
    """

    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    try:
        return COMMANDS[args.command](args, settings)
    except (ScopeError, HashingError) as exc:
        print(f"❌ {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_PRECONDITION
    except BrandSentryError as exc:
        print(f"❌ {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
