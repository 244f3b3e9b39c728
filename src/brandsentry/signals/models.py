"""Pydantic models for evidence, signals, findings, and run manifests.

Field declaration order is significant: JSONL artifacts serialize fields in
model order, so reordering fields changes output hashes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    """Ordered severity scale (low < medium < high < critical)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def at_least(self, other: "Severity") -> bool:
        return self.rank >= other.rank

    def step_down(self) -> "Severity":
        return _SEVERITY_ORDER[max(self.rank - 1, 0)]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().lower())

    @staticmethod
    def highest(values: "List[Severity] | Tuple[Severity, ...]") -> "Severity":
        return max(values, key=lambda item: item.rank) if values else Severity.LOW


_SEVERITY_ORDER: Tuple[Severity, ...] = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SignalType(str, Enum):
    """Enumerated signal variants produced by detectors."""

    TYPOSQUAT_DOMAIN = "typosquat-domain"
    IMPERSONATION_ACCOUNT = "impersonation-account"
    NEW_CERTIFICATE = "new-certificate"
    MENTION_SPIKE = "mention-spike"
    CODE_LEAK = "code-leak"
    PASTE_EXPOSURE = "paste-exposure"
    THREAT_FEED_MATCH = "threat-feed-match"


class Disposition(str, Enum):
    """Final policy classification of a finding."""

    ALERT = "alert"
    INVESTIGATE = "investigate"
    DIGEST = "digest"
    SUPPRESSED = "suppressed"


class RawEvidence(BaseModel):
    """Opaque payload handed over by an external collector.

    ``detector`` names the detector whose semantics interpret the payload;
    ``content`` is the primary text used for negative-keyword suppression.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    source: str
    detector: str
    reference: str = ""
    retrieved_at: datetime
    observed_at: Optional[datetime] = None
    subject: Optional[str] = None
    content: str = ""
    indicators: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    note: Optional[str] = None
    confidence_hint: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("source", "detector", mode="after")
    @classmethod
    def _normalize_kind(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("retrieved_at", "observed_at", mode="after")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class EvidenceRecord(BaseModel):
    """Ledger entry for a piece of evidence considered during a run."""

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    detector: str
    observed_at: datetime
    content_sha256: str
    url: Optional[str] = None
    note: Optional[str] = None
    redacted: bool = True
    outcome: str = "signal"


class Signal(BaseModel):
    """Normalized observation with a stable identity.

    ``id`` and ``dedupe_key`` are derived from the identity-bearing fields and
    never change after normalization; scoring and dedupe produce copies with
    updated derived fields only.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    signal_type: SignalType
    subject: str
    source: str
    detector: str
    evidence_ref: str
    timestamp: datetime
    indicators: List[str] = Field(default_factory=list)
    confidence: int = Field(default=0, ge=0, le=100)
    severity: Severity = Severity.LOW
    rationale: str = ""
    recommended_actions: List[str] = Field(default_factory=list)
    dedupe_key: str
    suppression_reason: Optional[str] = None
    policy_flags: List[str] = Field(default_factory=list)
    is_repeat: bool = False

    def sort_key(self) -> Tuple[str, str]:
        return (self.id, self.timestamp.isoformat())


class RuleTraceEntry(BaseModel):
    """One explainability step recorded while correlating a finding."""

    model_config = ConfigDict(frozen=True)

    rule: str
    effect: str
    delta: int = 0


class Finding(BaseModel):
    """Correlation of one or more signals into an actionable unit."""

    model_config = ConfigDict(frozen=True)

    id: str
    subject: str
    title: str
    signal_ids: List[str]
    signal_types: List[SignalType]
    confidence: int = Field(ge=0, le=100)
    severity: Severity
    matched_rules: List[str] = Field(default_factory=list)
    rule_trace: List[RuleTraceEntry] = Field(default_factory=list)
    corroborated: bool = False
    alert_blocked_by: Optional[str] = None
    suppression_reasons: List[str] = Field(default_factory=list)
    policy_flags: List[str] = Field(default_factory=list)
    new_signal_count: int = 0
    last_corroborated_at: datetime
    disposition: Disposition = Disposition.DIGEST
    disposition_reasons: List[str] = Field(default_factory=list)
    policy_gates: List[str] = Field(default_factory=list)
    # Pre-decay values, set once decay has lowered confidence.
    undecayed_confidence: Optional[int] = Field(default=None, ge=0, le=100)
    undecayed_severity: Optional[Severity] = None

    def sort_key(self) -> Tuple[str, str]:
        return (self.id, self.last_corroborated_at.isoformat())


class ArtifactHash(BaseModel):
    """Hash of an output artifact written during a run."""

    model_config = ConfigDict(frozen=True)

    artifact: str
    sha256: str


class DegradedSource(BaseModel):
    """Source that contributed no evidence because collection failed."""

    model_config = ConfigDict(frozen=True)

    source: str
    reason: str


class RunStats(BaseModel):
    """Counters describing what a run considered and produced."""

    model_config = ConfigDict(frozen=True)

    evidence_considered: int = 0
    evidence_suppressed: int = 0
    evidence_skipped: int = 0
    evidence_malformed: int = 0
    signals_total: int = 0
    signals_new: int = 0
    signals_repeat: int = 0
    findings_total: int = 0
    findings_by_disposition: Dict[str, int] = Field(default_factory=dict)


class Manifest(BaseModel):
    """Write-once record of a run's inputs, outputs, and decisions."""

    model_config = ConfigDict(frozen=True)

    tool_version: str
    build_id: str
    hash_scheme: str
    scope_hash: str
    config_hash: str
    demo_mode: bool = False
    detectors_run: List[str]
    run_window_start: datetime
    run_window_end: datetime
    evaluated_at: datetime
    started_at: datetime
    finished_at: datetime
    duration_ms: int = 0
    degraded_sources: List[DegradedSource] = Field(default_factory=list)
    stats: RunStats = Field(default_factory=RunStats)
    evidence_hashes: List[str] = Field(default_factory=list)
    output_hashes: List[ArtifactHash] = Field(default_factory=list)


def model_payload(model: BaseModel) -> Dict[str, Any]:
    """Return the JSON-mode payload of ``model`` in declaration order."""

    return model.model_dump(mode="json")


__all__ = [
    "ArtifactHash",
    "DegradedSource",
    "Disposition",
    "EvidenceRecord",
    "Finding",
    "Manifest",
    "RawEvidence",
    "RuleTraceEntry",
    "RunStats",
    "Severity",
    "Signal",
    "SignalType",
    "ensure_utc",
    "model_payload",
]
