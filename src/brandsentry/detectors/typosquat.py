"""Typosquat detector and deterministic candidate generation."""

from __future__ import annotations

from typing import List, Optional

from brandsentry.detectors.base import BasePolicy, DomainDetector
from brandsentry.detectors.reference_data import HOMOGLYPHS, HYPHEN_PREFIXES, HYPHEN_SUFFIXES, KEYBOARD_MAPS
from brandsentry.errors import NormalizationError
from brandsentry.signals import RawEvidence, Severity, SignalType


def permutations(domain: str, locale: str = "us") -> List[str]:
    """Return sorted, unique lookalike candidates for ``domain``.

    Covers hyphenated generic tokens, single-character omission, homoglyph
    substitution, adjacent swaps, and keyboard-adjacent substitution for the
    given locale. The domain itself is never returned.
    """

    domain = domain.strip().lower().rstrip(".")
    if "." not in domain:
        return sorted({f"{domain}-{token}" for token in HYPHEN_SUFFIXES} - {domain})

    label, tld = domain.split(".", 1)
    labels = {f"{label}-{token}" for token in HYPHEN_SUFFIXES}
    labels.update(f"{token}-{label}" for token in HYPHEN_PREFIXES)

    chars = list(label)
    for index in range(len(chars)):
        if len(chars) > 1:
            labels.add("".join(chars[:index] + chars[index + 1:]))
        for glyph in HOMOGLYPHS:
            labels.add("".join(chars[:index] + [glyph] + chars[index + 1:]))
    for index in range(len(chars) - 1):
        swapped = list(chars)
        swapped[index], swapped[index + 1] = swapped[index + 1], swapped[index]
        labels.add("".join(swapped))

    keyboard = KEYBOARD_MAPS.get(locale, KEYBOARD_MAPS["us"])
    for index, char in enumerate(chars):
        for adjacent in keyboard.get(char, ""):
            labels.add("".join(chars[:index] + [adjacent] + chars[index + 1:]))

    candidates = {f"{candidate}.{tld}" for candidate in labels if candidate and not candidate.startswith("-")}
    candidates.discard(domain)
    return sorted(candidates)


class TyposquatDetector(DomainDetector):
    """Lookalike domain registrations."""

    name = "typosquat"
    signal_type = SignalType.TYPOSQUAT_DOMAIN
    source_kinds = ("offline", "dns", "rdap")
    policy = BasePolicy(confidence=60, severity=Severity.MEDIUM, ceiling=Severity.HIGH)
    summary = "Typosquat candidate {candidate} resembles {subject}"
    recommended_actions = ("Review domain registration and hosting", "Consider takedown if abusive")
    requires_indicators = True

    def candidate(self, raw: RawEvidence, indicators: List[str]) -> Optional[str]:
        candidate = super().candidate(raw, indicators)
        if candidate is None:
            raise NormalizationError(
                f"typosquat evidence {raw.reference or '<unreferenced>'} names no candidate domain"
            )
        return candidate


__all__ = ["TyposquatDetector", "permutations"]
