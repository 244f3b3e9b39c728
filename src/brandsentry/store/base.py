"""Narrow read/write interface between the pipeline and cross-run history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Protocol, Sequence, Set

from pydantic import BaseModel, ConfigDict, Field

from brandsentry.signals import Finding, Manifest, Signal


class RunSummary(BaseModel):
    """Compact view of a recorded run, used for diff and trend features."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    evaluated_at: datetime
    scope_hash: str
    manifest_sha256: str
    demo_mode: bool = False
    signals_total: int = 0
    signals_new: int = 0
    findings_total: int = 0
    findings_by_disposition: Dict[str, int] = Field(default_factory=dict)


@dataclass
class RecordedRun:
    """Everything persisted for one completed run."""

    run_id: str
    manifest: Manifest
    manifest_sha256: str
    signals: Sequence[Signal] = field(default_factory=list)
    findings: Sequence[Finding] = field(default_factory=list)

    def summary(self) -> RunSummary:
        stats = self.manifest.stats
        return RunSummary(
            run_id=self.run_id,
            evaluated_at=self.manifest.evaluated_at,
            scope_hash=self.manifest.scope_hash,
            manifest_sha256=self.manifest_sha256,
            demo_mode=self.manifest.demo_mode,
            signals_total=stats.signals_total,
            signals_new=stats.signals_new,
            findings_total=stats.findings_total,
            findings_by_disposition=dict(stats.findings_by_disposition),
        )


class RunHistory(Protocol):
    """Persistence collaborator consumed by the pipeline runner."""

    def previous_dedupe_keys(
        self, before: datetime, *, exclude_run: str | None = None
    ) -> Set[str]:  # pragma: no cover - Protocol
        """Dedupe keys recorded by runs evaluated at or before ``before``.

        Keys first recorded by ``exclude_run`` are left out, so replaying a run
        sees the history it saw originally.
        """
        ...

    def record_run(self, run: RecordedRun) -> None:  # pragma: no cover - Protocol
        """Persist ``run``; a run id that is already stored is left untouched."""
        ...

    def runs_in_window(self, start: datetime, end: datetime) -> List[RunSummary]:  # pragma: no cover - Protocol
        ...

    def purge_older_than(self, days: int, now: datetime) -> int:  # pragma: no cover - Protocol
        ...


__all__ = ["RecordedRun", "RunHistory", "RunSummary"]
