"""Per-signal confidence and severity scoring."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from brandsentry.detectors import get_detector
from brandsentry.scope import Scope
from brandsentry.signals import Severity, Signal, SignalType
from brandsentry.signals.indicators import (
    YOUNG_DOMAIN_DAYS,
    corroborating_indicators,
    domain_age_days,
    first_domain,
    sld_tokens,
)

GENERIC_TOKEN_REASON = "generic-token candidate without corroboration"
FLAG_GENERIC_TOKEN = "suppressed:generic_token"
FLAG_OLD_DOMAIN = "prefer_digest:old_domain"
GENERIC_TOKEN_CAP = 60
OLD_DOMAIN_CAP = 50
VERY_YOUNG_DOMAIN_DAYS = 7
YOUNG_DOMAIN_BOOST = 15
VERY_YOUNG_DOMAIN_BOOST = 10

_CANDIDATE_TYPES = (SignalType.TYPOSQUAT_DOMAIN, SignalType.IMPERSONATION_ACCOUNT)


class Score(NamedTuple):
    confidence: int
    severity: Severity
    notes: Tuple[str, ...] = ()
    policy_flags: Tuple[str, ...] = ()
    suppression_reason: Optional[str] = None


def subject_signal_types(signals: Iterable[Signal]) -> Dict[str, FrozenSet[SignalType]]:
    """Map each subject to the distinct signal types observed for it."""

    grouped: Dict[str, set] = defaultdict(set)
    for signal in signals:
        grouped[signal.subject].add(signal.signal_type)
    return {subject: frozenset(types) for subject, types in grouped.items()}


def is_generic_candidate(subject: str, candidate: str, generic_tokens: Sequence[str]) -> bool:
    """Return ``True`` when the candidate only adds dictionary-common tokens to the subject."""

    base = set(sld_tokens(subject))
    added = [token for token in sld_tokens(candidate) if token not in base]
    return bool(added) and all(token in generic_tokens for token in added)


def _candidate(signal: Signal) -> Optional[str]:
    if signal.signal_type == SignalType.TYPOSQUAT_DOMAIN:
        return first_domain(signal.indicators)
    if signal.signal_type == SignalType.IMPERSONATION_ACCOUNT and signal.indicators:
        return signal.indicators[0].lower()
    return None


def _cap(severity: Severity, ceiling: Severity) -> Severity:
    return ceiling if severity.rank > ceiling.rank else severity


def score(
    signal: Signal,
    scope: Scope,
    *,
    subject_types: Optional[Mapping[str, FrozenSet[SignalType]]] = None,
) -> Score:
    """Compute confidence and severity for ``signal`` under ``scope``.

    Order: detector base policy, typosquat tuning, source trust multiplier,
    clamp to [0, 100], detector severity ceiling, generic-token downgrade,
    old-domain policy. Severity never exceeds the detector's ceiling.
    """

    policy = get_detector(signal.detector).policy
    confidence = signal.confidence or policy.confidence
    severity = policy.severity
    notes: List[str] = [f"base {signal.detector}: confidence {confidence}, severity {severity.value}"]
    flags: List[str] = []
    suppression_reason: Optional[str] = None
    candidate = _candidate(signal)
    age = domain_age_days(signal.indicators) if signal.signal_type == SignalType.TYPOSQUAT_DOMAIN else None

    if signal.signal_type == SignalType.TYPOSQUAT_DOMAIN:
        weight = scope.typosquat.distance_weight
        if candidate and weight:
            distance = Levenshtein.distance(candidate, signal.subject)
            boost = max(weight - distance, 0)
            if boost:
                confidence += boost
                notes.append(f"edit distance {distance}: +{boost}")
        if age is not None and age < YOUNG_DOMAIN_DAYS:
            confidence += YOUNG_DOMAIN_BOOST
            notes.append(f"domain age {age}d: +{YOUNG_DOMAIN_BOOST}")
            if age < VERY_YOUNG_DOMAIN_DAYS:
                confidence += VERY_YOUNG_DOMAIN_BOOST
                severity = Severity.HIGH
                notes.append(f"domain age {age}d: +{VERY_YOUNG_DOMAIN_BOOST}, severity high")

    trust = scope.trust_for(signal.source)
    if trust != 1.0:
        confidence = int(confidence * trust + 0.5)
        notes.append(f"source trust {signal.source} x{trust:g}")

    confidence = min(max(confidence, 0), 100)
    capped = _cap(severity, policy.ceiling)
    if capped is not severity:
        notes.append(f"severity capped at detector ceiling {capped.value}")
        severity = capped

    if signal.signal_type in _CANDIDATE_TYPES and candidate:
        if is_generic_candidate(signal.subject, candidate, scope.policy.typosquat.generic_tokens):
            others = (subject_types or {}).get(signal.subject, frozenset()) - {signal.signal_type}
            if not others and not corroborating_indicators(signal.indicators):
                confidence = min(confidence, GENERIC_TOKEN_CAP)
                severity = _cap(severity, Severity.MEDIUM)
                suppression_reason = GENERIC_TOKEN_REASON
                flags.append(FLAG_GENERIC_TOKEN)
                notes.append(f"generic-token candidate without corroboration: confidence capped at {GENERIC_TOKEN_CAP}")

    if age is not None and age > scope.policy.typosquat.old_domain_days:
        confidence = min(confidence, OLD_DOMAIN_CAP)
        severity = _cap(severity, Severity.MEDIUM)
        flags.append(FLAG_OLD_DOMAIN)
        notes.append(
            f"domain age {age}d exceeds {scope.policy.typosquat.old_domain_days}d: "
            f"confidence capped at {OLD_DOMAIN_CAP}, prefer digest"
        )

    return Score(
        confidence=confidence,
        severity=severity,
        notes=tuple(notes),
        policy_flags=tuple(flags),
        suppression_reason=suppression_reason,
    )


def apply_score(signal: Signal, result: Score) -> Signal:
    """Return a copy of ``signal`` carrying the derived score; identity fields are untouched."""

    rationale = " | ".join(part for part in (signal.rationale, "; ".join(result.notes)) if part)
    return signal.model_copy(
        update={
            "confidence": result.confidence,
            "severity": result.severity,
            "rationale": rationale,
            "policy_flags": sorted({*signal.policy_flags, *result.policy_flags}),
            "suppression_reason": result.suppression_reason or signal.suppression_reason,
        }
    )


def score_signals(signals: Sequence[Signal], scope: Scope) -> List[Signal]:
    """Score every signal, using the whole set for cross-type corroboration."""

    types = subject_signal_types(signals)
    return [apply_score(signal, score(signal, scope, subject_types=types)) for signal in signals]


__all__ = [
    "FLAG_GENERIC_TOKEN",
    "FLAG_OLD_DOMAIN",
    "GENERIC_TOKEN_REASON",
    "Score",
    "apply_score",
    "is_generic_candidate",
    "score",
    "score_signals",
    "subject_signal_types",
]
