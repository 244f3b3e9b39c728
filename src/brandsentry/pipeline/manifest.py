"""Run manifest aggregation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, NamedTuple, Optional, Sequence

from brandsentry import __version__
from brandsentry.identity import HASH_SCHEME, config_hash, scope_hash
from brandsentry.scope import Scope
from brandsentry.signals import ArtifactHash, DegradedSource, Manifest, RunStats, ensure_utc


class RunWindow(NamedTuple):
    start: datetime
    end: datetime


def build(
    run_window: RunWindow,
    scope: Scope,
    config: Any,
    detectors_run: Iterable[str],
    evidence_hashes: Sequence[str],
    output_hashes: Sequence[ArtifactHash],
    *,
    evaluated_at: datetime,
    started_at: datetime,
    finished_at: datetime,
    build_id: str = "unknown",
    tool_version: str = __version__,
    degraded_sources: Iterable[DegradedSource] = (),
    stats: Optional[RunStats] = None,
) -> Manifest:
    """Aggregate run metadata and artifact hashes into a :class:`Manifest`.

    Pure aggregation: ordering of ``evidence_hashes`` and ``output_hashes`` is
    preserved as given, detectors and degraded sources are sorted.
    """

    started = ensure_utc(started_at)
    finished = ensure_utc(finished_at)
    duration_ms = max(int((finished - started).total_seconds() * 1000), 0)
    return Manifest(
        tool_version=tool_version,
        build_id=build_id,
        hash_scheme=HASH_SCHEME,
        scope_hash=scope_hash(scope),
        config_hash=config_hash(config),
        demo_mode=scope.demo,
        detectors_run=sorted(set(detectors_run)),
        run_window_start=ensure_utc(run_window.start),
        run_window_end=ensure_utc(run_window.end),
        evaluated_at=ensure_utc(evaluated_at),
        started_at=started,
        finished_at=finished,
        duration_ms=duration_ms,
        degraded_sources=sorted(degraded_sources, key=lambda item: (item.source, item.reason)),
        stats=stats or RunStats(),
        evidence_hashes=list(evidence_hashes),
        output_hashes=list(output_hashes),
    )


__all__ = ["RunWindow", "build"]
