"""Registry of detector implementations keyed by detector kind."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from brandsentry.detectors.base import BasePolicy, Detector, DomainDetector
from brandsentry.detectors.typosquat import TyposquatDetector
from brandsentry.errors import ScopeError
from brandsentry.scope import DETECTOR_KINDS, Scope
from brandsentry.signals import Severity, SignalType


class CertificateDetector(DomainDetector):
    """Certificates newly issued for lookalike names (certificate transparency)."""

    name = "certificate"
    signal_type = SignalType.NEW_CERTIFICATE
    source_kinds = ("ct",)
    policy = BasePolicy(confidence=50, severity=Severity.MEDIUM, ceiling=Severity.MEDIUM)
    summary = "New certificate issued for {candidate} near {subject}"
    recommended_actions = ("Inspect certificate subject names", "Monitor the host for phishing content")


class ImpersonationDetector(Detector):
    """Social accounts presenting as the brand."""

    name = "impersonation"
    signal_type = SignalType.IMPERSONATION_ACCOUNT
    source_kinds = ("social",)
    policy = BasePolicy(confidence=55, severity=Severity.MEDIUM, ceiling=Severity.HIGH)
    summary = "Account {candidate} may impersonate {subject}"
    recommended_actions = ("Compare against official handles", "Report the account to the platform")
    requires_indicators = True

    def candidate(self, raw, indicators):
        return indicators[0].lower() if indicators else None


class MentionsDetector(Detector):
    """Unusual volume of public mentions."""

    name = "mentions"
    signal_type = SignalType.MENTION_SPIKE
    source_kinds = ("social", "feeds")
    policy = BasePolicy(confidence=40, severity=Severity.LOW, ceiling=Severity.MEDIUM)
    summary = "Mention volume spike for {subject}"
    recommended_actions = ("Review recent mentions for coordinated activity",)


class CodeLeakDetector(Detector):
    """Brand material exposed in public code repositories."""

    name = "code-leak"
    signal_type = SignalType.CODE_LEAK
    source_kinds = ("github",)
    policy = BasePolicy(confidence=70, severity=Severity.MEDIUM, ceiling=Severity.HIGH)
    summary = "Public code references {subject}"
    recommended_actions = ("Confirm whether the code contains credentials", "Rotate exposed secrets")


class PasteDetector(Detector):
    """Brand material exposed on paste sites."""

    name = "paste"
    signal_type = SignalType.PASTE_EXPOSURE
    source_kinds = ("paste",)
    policy = BasePolicy(confidence=70, severity=Severity.HIGH, ceiling=Severity.CRITICAL)
    summary = "Paste exposure mentioning {subject}"
    recommended_actions = ("Assess exposed data", "Request removal from the paste host")


class ThreatFeedDetector(DomainDetector):
    """Matches against third-party threat intelligence feeds."""

    name = "threat-feed"
    signal_type = SignalType.THREAT_FEED_MATCH
    source_kinds = ("feeds",)
    policy = BasePolicy(confidence=75, severity=Severity.HIGH, ceiling=Severity.CRITICAL)
    summary = "Threat feed lists {candidate} against {subject}"
    recommended_actions = ("Block the listed indicator", "Search logs for contact with the indicator")


DETECTORS: Dict[str, Detector] = {
    detector.name: detector
    for detector in (
        CertificateDetector(),
        CodeLeakDetector(),
        ImpersonationDetector(),
        MentionsDetector(),
        PasteDetector(),
        ThreatFeedDetector(),
        TyposquatDetector(),
    )
}

if set(DETECTORS) != set(DETECTOR_KINDS):  # pragma: no cover - import-time consistency check
    raise RuntimeError("detector registry and DETECTOR_KINDS disagree")


def get_detector(name: str) -> Detector:
    """Return the detector registered under ``name``."""

    try:
        return DETECTORS[name.strip().lower()]
    except KeyError as exc:
        raise ScopeError(f"unknown detector kind '{name}'") from exc


def detectors_for(scope: Scope, selected: Iterable[str] | None = None) -> List[Detector]:
    """Return detectors permitted by ``scope`` (optionally narrowed to ``selected``), sorted by name."""

    names = scope.allowed_detectors if selected is None else tuple(selected)
    chosen = []
    for name in sorted(set(names)):
        if not scope.allows_detector(name):
            raise ScopeError(f"detector '{name}' is not permitted by scope allowed_detectors")
        chosen.append(get_detector(name))
    return chosen


def signal_types_for(scope: Scope) -> Tuple[SignalType, ...]:
    """Signal types the scope's allowed detectors can produce."""

    produced = {signal_type for detector in DETECTORS.values() for signal_type in detector.produces(scope)}
    return tuple(sorted(produced, key=lambda item: item.value))


__all__ = [
    "DETECTORS",
    "CertificateDetector",
    "CodeLeakDetector",
    "ImpersonationDetector",
    "MentionsDetector",
    "PasteDetector",
    "ThreatFeedDetector",
    "detectors_for",
    "get_detector",
    "signal_types_for",
]
