"""Canonical data model shared by every pipeline stage."""

from .models import (
    ArtifactHash,
    DegradedSource,
    Disposition,
    EvidenceRecord,
    Finding,
    Manifest,
    RawEvidence,
    RuleTraceEntry,
    RunStats,
    Severity,
    Signal,
    SignalType,
    ensure_utc,
    model_payload,
)

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
