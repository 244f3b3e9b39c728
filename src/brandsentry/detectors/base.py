"""Detector capability interface.

A detector names the signal type it produces, the source kinds whose evidence
it understands, its base scoring policy, and how it reads a
:class:`~brandsentry.signals.RawEvidence` into the canonical signal attributes.
The pipeline only ever talks to this interface.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from brandsentry.errors import NormalizationError
from brandsentry.scope import Scope
from brandsentry.signals import RawEvidence, Severity, SignalType
from brandsentry.signals.indicators import canonical_indicators, first_domain


@dataclass(frozen=True)
class BasePolicy:
    """Starting confidence and severity for a detector, plus the severity scoring may not exceed."""

    confidence: int
    severity: Severity
    ceiling: Severity


@dataclass(frozen=True)
class Interpretation:
    """Detector reading of one piece of raw evidence."""

    signal_type: SignalType
    subject: Optional[str]
    indicators: List[str]
    rationale: str
    recommended_actions: List[str] = field(default_factory=list)
    candidate: Optional[str] = None


def scoped_subjects(scope: Scope) -> Tuple[str, ...]:
    """Every entity a signal may concern, domains first."""

    return tuple(dict.fromkeys((*scope.domains, *scope.brand_terms, *scope.products, *scope.official_handles)))


def closest_domain(candidate: str, domains: Tuple[str, ...]) -> Optional[str]:
    """Return the scope domain with the smallest edit distance to ``candidate``."""

    if not domains:
        return None
    return min(domains, key=lambda domain: (Levenshtein.distance(candidate, domain), domain))


class Detector(ABC):
    """Base detector; subclasses set the class attributes and override hooks as needed."""

    name: ClassVar[str]
    signal_type: ClassVar[SignalType]
    source_kinds: ClassVar[Tuple[str, ...]]
    policy: ClassVar[BasePolicy]
    summary: ClassVar[str]
    recommended_actions: ClassVar[Tuple[str, ...]] = ()
    requires_indicators: ClassVar[bool] = False

    def produces(self, scope: Scope) -> Tuple[SignalType, ...]:
        """Signal types this detector emits under ``scope`` (none when not allowed)."""

        return (self.signal_type,) if scope.allows_detector(self.name) else ()

    def accepts_source(self, source: str) -> bool:
        return source in self.source_kinds or source == "fixture"

    def interpret(self, raw: RawEvidence, scope: Scope) -> Interpretation:
        """Map raw evidence to signal attributes.

        Raises:
            NormalizationError: If the evidence lacks what this detector needs.
        """

        indicators = canonical_indicators(raw.indicators)
        if self.requires_indicators and not indicators:
            raise NormalizationError(f"{self.name} evidence {raw.reference or '<unreferenced>'} carries no indicators")
        candidate = self.candidate(raw, indicators)
        subject = self.resolve_subject(raw, scope, candidate)
        return Interpretation(
            signal_type=self.signal_type,
            subject=subject,
            indicators=indicators,
            rationale=self.rationale(raw, subject, candidate),
            recommended_actions=list(self.recommended_actions),
            candidate=candidate,
        )

    def candidate(self, raw: RawEvidence, indicators: List[str]) -> Optional[str]:
        return first_domain(indicators)

    def resolve_subject(self, raw: RawEvidence, scope: Scope, candidate: Optional[str]) -> Optional[str]:
        """Return the scoped entity the evidence concerns, or ``None`` when it concerns none."""

        subjects = scoped_subjects(scope)
        if raw.subject:
            subject = raw.subject.strip().lower()
            return subject if subject in subjects else None
        haystack = " ".join([raw.content, *raw.indicators]).lower()
        for subject in subjects:
            if subject in haystack:
                return subject
        return None

    def rationale(self, raw: RawEvidence, subject: Optional[str], candidate: Optional[str]) -> str:
        text = self.summary.format(subject=subject or "unknown", candidate=candidate or "unknown")
        if raw.note:
            text = f"{text}; {raw.note.strip()}"
        return text


class DomainDetector(Detector):
    """Detector whose evidence names a lookalike domain; unattributed evidence goes to the closest scope domain."""

    def resolve_subject(self, raw: RawEvidence, scope: Scope, candidate: Optional[str]) -> Optional[str]:
        if raw.subject or not candidate:
            return super().resolve_subject(raw, scope, candidate)
        return closest_domain(candidate, scope.domains) or super().resolve_subject(raw, scope, candidate)


__all__ = ["BasePolicy", "Detector", "DomainDetector", "Interpretation", "closest_domain", "scoped_subjects"]
