"""Run orchestration: normalize, dedupe, score, correlate, escalate, and snapshot.

The core stages run sequentially on the calling thread. Collection is the
caller's concern; the runner receives fully collected evidence and never
consults the wall clock except through its injected ``clock``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from brandsentry import __version__
from brandsentry.detectors import detectors_for, signal_types_for
from brandsentry.errors import PersistenceError
from brandsentry.identity import hash_bytes, run_id_for
from brandsentry.normalization import normalize_batch
from brandsentry.observability import Observability, get_observability
from brandsentry.pipeline.correlator import correlate
from brandsentry.pipeline.dedupe import dedupe
from brandsentry.pipeline.escalator import escalate_findings
from brandsentry.pipeline.manifest import RunWindow, build
from brandsentry.pipeline.rules import rule_set
from brandsentry.pipeline.scorer import score_signals
from brandsentry.reports.writer import jsonl_bytes, manifest_bytes, write_artifact
from brandsentry.scope import Scope, enforce_selection
from brandsentry.settings import Settings, get_settings
from brandsentry.signals import (
    DegradedSource,
    Disposition,
    EvidenceRecord,
    Finding,
    Manifest,
    RawEvidence,
    RunStats,
    Signal,
    ensure_utc,
)
from brandsentry.store.base import RecordedRun, RunHistory

LOGGER = logging.getLogger(__name__)

SIGNALS_FILE = "signals.jsonl"
FINDINGS_FILE = "findings.jsonl"
EVIDENCE_FILE = "evidence.jsonl"
RAW_CAPTURE_FILE = "raw_evidence.jsonl"
MANIFEST_FILE = "manifest.json"

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(instant: datetime) -> Clock:
    """Clock pinned to ``instant``; start and finish of a run coincide."""

    pinned = ensure_utc(instant)
    return lambda: pinned


class RunConfig(BaseModel):
    """Per-invocation choices that shape a run's output."""

    model_config = ConfigDict(frozen=True)

    demo: bool = False
    detectors: Optional[Tuple[str, ...]] = None
    sources: Optional[Tuple[str, ...]] = None
    window_days: int = Field(default=1, ge=1)
    no_network: bool = False

    def hash_payload(self) -> Dict[str, Any]:
        """Output-shaping fields only; collection plumbing is recorded elsewhere in the manifest."""

        return {
            "demo": self.demo,
            "detectors": sorted(self.detectors) if self.detectors is not None else None,
            "window_days": self.window_days,
        }


@dataclass
class PipelineOutcome:
    """In-memory result of the core stages for one run."""

    signals: List[Signal]
    findings: List[Finding]
    evidence: List[EvidenceRecord]
    evidence_hashes: List[str]
    stats: RunStats


@dataclass
class RunResult:
    """A finished run: outcome, manifest, and where the artifacts went."""

    outcome: PipelineOutcome
    manifest: Manifest
    manifest_sha256: str
    run_id: str
    output_dir: Path
    artifacts: Dict[str, Path] = field(default_factory=dict)
    persistence_error: Optional[str] = None

    @property
    def alerts(self) -> List[Finding]:
        return [finding for finding in self.outcome.findings if finding.disposition == Disposition.ALERT]


def _stats(
    considered: int,
    suppressed: int,
    skipped: int,
    malformed: int,
    signals: Sequence[Signal],
    findings: Sequence[Finding],
) -> RunStats:
    dispositions = Counter(finding.disposition.value for finding in findings)
    repeats = sum(1 for signal in signals if signal.is_repeat)
    return RunStats(
        evidence_considered=considered,
        evidence_suppressed=suppressed,
        evidence_skipped=skipped,
        evidence_malformed=malformed,
        signals_total=len(signals),
        signals_new=len(signals) - repeats,
        signals_repeat=repeats,
        findings_total=len(findings),
        findings_by_disposition={value.value: dispositions.get(value.value, 0) for value in Disposition},
    )


class PipelineRunner:
    """Drive one run of the core pipeline for a validated scope."""

    def __init__(
        self,
        scope: Scope,
        config: RunConfig | None = None,
        *,
        history: RunHistory | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.scope = scope
        self.config = config or RunConfig(demo=scope.demo)
        self.history = history
        self.settings = settings or get_settings()
        self.clock = clock or system_clock
        self.observability = observability or get_observability(component="pipeline", settings=self.settings)
        self.detectors, self.sources = enforce_selection(
            scope, detectors=self.config.detectors, sources=self.config.sources
        )
        # Hash the resolved selection so an explicit choice equal to the allowlist hashes the same.
        self.config = self.config.model_copy(update={"detectors": self.detectors, "sources": self.sources})
        self.detector_plugins = detectors_for(self._working_scope())
        rule_set(scope)

    @property
    def tool_version(self) -> str:
        return self.settings.pipeline.tool_version or __version__

    def window(self, now: datetime) -> RunWindow:
        return RunWindow(start=now - timedelta(days=self.config.window_days), end=now)

    def _working_scope(self) -> Scope:
        return self.scope.model_copy(update={"allowed_detectors": self.detectors, "allowed_sources": self.sources})

    def process(
        self,
        evidence: Iterable[RawEvidence],
        *,
        now: datetime,
        malformed: int = 0,
        replay_of: str | None = None,
    ) -> PipelineOutcome:
        """Run normalize → dedupe → score → correlate → escalate over collected evidence.

        History counts as seen when recorded at or before ``now``. ``replay_of``
        names the recorded run being reproduced, whose own first sightings are
        not treated as history.
        """

        now = ensure_utc(now)
        working = self._working_scope()

        batch = normalize_batch(evidence, working)
        self.observability.emit_event(
            "pipeline.normalized",
            considered=batch.considered + malformed,
            signals=len(batch.signals),
            suppressed=batch.suppressed,
            skipped=batch.skipped,
            malformed=batch.malformed + malformed,
        )

        seen_keys = (
            self.history.previous_dedupe_keys(now, exclude_run=replay_of) if self.history is not None else set()
        )
        deduped = dedupe(batch.signals, seen_keys)
        self.observability.emit_event("pipeline.deduped", new=len(deduped.new), repeat=len(deduped.repeats))

        scored = score_signals(deduped.all, working)
        findings = escalate_findings(correlate(scored, scope=working, now=now), working.policy)
        stats = _stats(
            batch.considered + malformed,
            batch.suppressed,
            batch.skipped,
            batch.malformed + malformed,
            scored,
            findings,
        )
        self.observability.emit_event(
            "pipeline.escalated",
            findings=stats.findings_total,
            by_disposition=stats.findings_by_disposition,
        )
        for disposition, count in stats.findings_by_disposition.items():
            if count:
                self.observability.increment("findings", value=count, tags={"disposition": disposition})

        return PipelineOutcome(
            signals=sorted(scored, key=Signal.sort_key),
            findings=findings,
            evidence=batch.records,
            evidence_hashes=batch.evidence_hashes,
            stats=stats,
        )

    def run(
        self,
        evidence: Sequence[RawEvidence],
        output_dir: Path,
        *,
        degraded: Iterable[DegradedSource] = (),
        malformed: int = 0,
        persist: bool = True,
        build_id: str | None = None,
        tool_version: str | None = None,
        replay_of: str | None = None,
    ) -> RunResult:
        """Process evidence, write artifacts and the manifest, then record history.

        A history write failure is reported on the result; the artifacts are
        already on disk by then.
        """

        started_at = ensure_utc(self.clock())
        self.observability.emit_event(
            "run.started",
            detectors=[detector.name for detector in self.detector_plugins],
            signal_types=[item.value for item in signal_types_for(self._working_scope())],
        )
        outcome = self.process(evidence, now=started_at, malformed=malformed, replay_of=replay_of)

        output_dir = Path(output_dir)
        artifacts: Dict[str, Path] = {}
        output_hashes = []
        files = [
            (SIGNALS_FILE, jsonl_bytes(outcome.signals)),
            (FINDINGS_FILE, jsonl_bytes(outcome.findings)),
            (EVIDENCE_FILE, jsonl_bytes(outcome.evidence)),
        ]
        if self.scope.privacy.store_raw:
            files.append((RAW_CAPTURE_FILE, jsonl_bytes(sorted(evidence, key=lambda raw: raw.model_dump_json()))))
        for name, data in files:
            output_hashes.append(write_artifact(output_dir / name, data))
            artifacts[name] = output_dir / name

        finished_at = ensure_utc(self.clock())
        manifest = build(
            self.window(started_at),
            self.scope,
            self.config,
            self.detectors,
            outcome.evidence_hashes,
            output_hashes,
            evaluated_at=started_at,
            started_at=started_at,
            finished_at=finished_at,
            build_id=build_id or self.settings.build_id(),
            tool_version=tool_version or self.tool_version,
            degraded_sources=degraded,
            stats=outcome.stats,
        )
        data = manifest_bytes(manifest)
        write_artifact(output_dir / MANIFEST_FILE, data)
        artifacts[MANIFEST_FILE] = output_dir / MANIFEST_FILE
        manifest_sha256 = hash_bytes(data)
        run_id = run_id_for(manifest)
        self.observability.record_timing("run.duration", manifest.duration_ms)

        persistence_error = None
        if persist and self.history is not None:
            try:
                self.history.record_run(
                    RecordedRun(
                        run_id=run_id,
                        manifest=manifest,
                        manifest_sha256=manifest_sha256,
                        signals=outcome.signals,
                        findings=outcome.findings,
                    )
                )
                self.history.purge_older_than(self.scope.privacy.max_evidence_retention_days, started_at)
            except PersistenceError as exc:
                LOGGER.error("History write failed for run %s: %s", run_id, exc)
                persistence_error = str(exc)

        self.observability.emit_event(
            "run.completed",
            run_id=run_id,
            manifest_sha256=manifest_sha256,
            output_dir=str(output_dir),
            degraded=[item.source for item in manifest.degraded_sources],
            persistence_error=persistence_error,
        )
        return RunResult(
            outcome=outcome,
            manifest=manifest,
            manifest_sha256=manifest_sha256,
            run_id=run_id,
            output_dir=output_dir,
            artifacts=artifacts,
            persistence_error=persistence_error,
        )


__all__ = [
    "EVIDENCE_FILE",
    "FINDINGS_FILE",
    "MANIFEST_FILE",
    "RAW_CAPTURE_FILE",
    "SIGNALS_FILE",
    "Clock",
    "PipelineOutcome",
    "PipelineRunner",
    "RunConfig",
    "RunResult",
    "fixed_clock",
    "system_clock",
]
