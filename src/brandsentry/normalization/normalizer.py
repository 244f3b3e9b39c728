"""Evidence normalization for brandsentry.

Turns collector payloads into canonical :class:`~brandsentry.signals.Signal`
records. Negative-keyword suppression happens here, before any identity is
derived, so suppressed evidence never consumes a dedupe slot. Identity is
computed from canonical pre-redaction values; redaction then masks the
display fields that leave the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from brandsentry.detectors import get_detector
from brandsentry.errors import NormalizationError
from brandsentry.identity import (
    derive_dedupe_key,
    derive_evidence_ref,
    derive_signal_id,
    hash_record,
    sha256_hex,
)
from brandsentry.scope import Redactor, Scope
from brandsentry.signals import EvidenceRecord, RawEvidence, Signal

LOGGER = logging.getLogger(__name__)

OUTCOME_SIGNAL = "signal"
OUTCOME_SUPPRESSED = "suppressed:negative-keyword"
OUTCOME_MALFORMED = "malformed"


@dataclass(frozen=True)
class Skip:
    """Evidence that produced no signal.

    ``suppressed`` marks a negative-keyword hit; everything else is out of
    scope for this run.
    """

    reason: str
    suppressed: bool = False

    @property
    def outcome(self) -> str:
        return OUTCOME_SUPPRESSED if self.suppressed else f"skipped:{self.reason}"


@dataclass
class NormalizationBatch:
    """Everything the normalizer produced for one run's evidence."""

    signals: List[Signal] = field(default_factory=list)
    records: List[EvidenceRecord] = field(default_factory=list)
    evidence_hashes: List[str] = field(default_factory=list)
    considered: int = 0
    suppressed: int = 0
    skipped: int = 0
    malformed: int = 0


def negative_keyword_hit(text: str, scope: Scope) -> Optional[str]:
    """Return the first negative keyword contained in ``text`` (case-insensitive)."""

    lowered = text.lower()
    for keyword in scope.negative_keywords:
        if keyword and keyword in lowered:
            return keyword
    return None


def evidence_ref_for(raw: RawEvidence, redactor: Redactor) -> str:
    """Return the reference used as identity for ``raw``.

    A missing reference, or one that would expose a redacted span, is replaced
    by a content-derived ``ev_`` reference.
    """

    reference = raw.reference.strip()
    if reference and not (redactor.active and redactor.exposes(reference)):
        return reference
    return derive_evidence_ref(raw.source, raw.detector, raw.content, raw.indicators)


def normalize(raw: RawEvidence, scope: Scope, *, redactor: Optional[Redactor] = None) -> Union[Signal, Skip]:
    """Normalize one piece of raw evidence into a signal, or explain why not.

    Raises:
        NormalizationError: If the evidence is malformed for its detector.
    """

    redactor = redactor or Redactor.for_scope(scope)
    if not scope.allows_detector(raw.detector):
        return Skip(f"detector {raw.detector} not allowed")
    if not scope.allows_source(raw.source):
        return Skip(f"source {raw.source} not allowed")

    detector = get_detector(raw.detector)
    if not detector.accepts_source(raw.source):
        return Skip(f"source {raw.source} not handled by {detector.name}")

    keyword = negative_keyword_hit(raw.content, scope)
    if keyword is not None:
        return Skip(f"negative keyword {keyword}", suppressed=True)

    reading = detector.interpret(raw, scope)
    if reading.subject is None:
        return Skip("no scoped subject")

    evidence_ref = evidence_ref_for(raw, redactor)
    signal_id = derive_signal_id(reading.signal_type, reading.subject, evidence_ref, reading.indicators)
    dedupe_key = derive_dedupe_key(reading.signal_type, reading.subject, reading.indicators)

    return Signal(
        id=signal_id,
        signal_type=reading.signal_type,
        subject=reading.subject,
        source=raw.source,
        detector=detector.name,
        evidence_ref=evidence_ref,
        timestamp=raw.observed_at or raw.retrieved_at,
        indicators=redactor.redact_all(reading.indicators),
        confidence=raw.confidence_hint or 0,
        severity=detector.policy.severity,
        rationale=redactor.redact(reading.rationale),
        recommended_actions=redactor.redact_all(reading.recommended_actions),
        dedupe_key=dedupe_key,
    )


def evidence_record(raw: RawEvidence, scope: Scope, outcome: str, *, redactor: Redactor) -> EvidenceRecord:
    """Build the evidence ledger entry for ``raw``; url and note survive only with raw storage."""

    store_raw = scope.privacy.store_raw
    return EvidenceRecord(
        id=evidence_ref_for(raw, redactor),
        source=raw.source,
        detector=raw.detector,
        observed_at=raw.observed_at or raw.retrieved_at,
        content_sha256=sha256_hex(raw.content.encode("utf-8")),
        url=raw.url if store_raw else None,
        note=raw.note if store_raw else None,
        redacted=not store_raw,
        outcome=outcome,
    )


def normalize_batch(evidence: Iterable[RawEvidence], scope: Scope) -> NormalizationBatch:
    """Normalize a run's evidence in canonical (hash) order.

    Arrival order never influences output: records are sorted by their
    canonical hash before processing.
    """

    redactor = Redactor.for_scope(scope)
    keyed = sorted(((hash_record(raw), raw) for raw in evidence), key=lambda item: item[0])
    batch = NormalizationBatch()
    seen_records = set()

    for evidence_hash, raw in keyed:
        batch.considered += 1
        batch.evidence_hashes.append(evidence_hash)
        try:
            result = normalize(raw, scope, redactor=redactor)
        except NormalizationError as exc:
            LOGGER.warning("Skipping malformed evidence hash=%s: %s", evidence_hash, exc)
            batch.malformed += 1
            outcome = OUTCOME_MALFORMED
        else:
            if isinstance(result, Skip):
                if result.suppressed:
                    batch.suppressed += 1
                else:
                    batch.skipped += 1
                LOGGER.debug("Evidence hash=%s produced no signal: %s", evidence_hash, result.reason)
                outcome = result.outcome
            else:
                batch.signals.append(result)
                outcome = OUTCOME_SIGNAL

        record = evidence_record(raw, scope, outcome, redactor=redactor)
        if (record.id, outcome) not in seen_records:
            seen_records.add((record.id, outcome))
            batch.records.append(record)

    batch.records.sort(key=lambda record: (record.id, record.outcome))
    return batch


__all__ = [
    "NormalizationBatch",
    "OUTCOME_MALFORMED",
    "OUTCOME_SIGNAL",
    "OUTCOME_SUPPRESSED",
    "Skip",
    "evidence_record",
    "evidence_ref_for",
    "negative_keyword_hit",
    "normalize",
    "normalize_batch",
]
