"""Helpers for reading typed facts out of signal indicators.

Indicators are free-form strings; a few conventional shapes carry meaning
for scoring and correlation:

* ``rdap_age_days=<n>`` gives a domain's registration age.
* ``ct_cert``/``ct_log``/``new_cert`` markers tie a signal to certificate issuance.
* ``landing_similarity``/``favicon_similarity``/``landing_page`` markers tie a
  signal to a live landing page resembling the client's.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

AGE_PREFIX = "rdap_age_days="
CT_MARKERS = ("ct_cert", "ct_log", "new_cert")
LANDING_MARKERS = ("landing_similarity", "favicon_similarity", "landing_page")
YOUNG_DOMAIN_DAYS = 30

_DOMAIN_RE = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9-]{2,63}$")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def canonical_indicators(values: Iterable[str]) -> List[str]:
    """Strip indicators, drop empty ones, and remove exact duplicates keeping first-seen order."""

    seen = set()
    ordered = []
    for value in values:
        cleaned = value.strip()
        if not cleaned or cleaned in seen:
            continue
        seen.add(cleaned)
        ordered.append(cleaned)
    return ordered


def _contains_marker(indicators: Iterable[str], markers: Iterable[str]) -> bool:
    markers = tuple(markers)
    return any(marker in indicator.lower() for indicator in indicators for marker in markers)


def has_landing_indicator(indicators: Iterable[str]) -> bool:
    return _contains_marker(indicators, LANDING_MARKERS)


def has_ct_indicator(indicators: Iterable[str]) -> bool:
    return _contains_marker(indicators, CT_MARKERS)


def contains_any(indicators: Iterable[str], needles: Iterable[str]) -> bool:
    """Return ``True`` when any indicator contains any of the lowercase ``needles``."""

    return _contains_marker(indicators, needles)


def domain_age_days(indicators: Iterable[str]) -> Optional[int]:
    """Return the first parseable ``rdap_age_days`` value, if any."""

    for indicator in indicators:
        value = indicator.strip().lower()
        if value.startswith(AGE_PREFIX):
            try:
                return int(value[len(AGE_PREFIX):])
            except ValueError:
                continue
    return None


def has_young_domain(indicators: Iterable[str]) -> bool:
    age = domain_age_days(indicators)
    return age is not None and age < YOUNG_DOMAIN_DAYS


def corroborating_indicators(indicators: Iterable[str]) -> bool:
    """Return ``True`` when the indicators themselves corroborate a candidate."""

    materialized = list(indicators)
    return has_ct_indicator(materialized) or has_landing_indicator(materialized) or has_young_domain(materialized)


def is_domain_like(value: str) -> bool:
    return bool(_DOMAIN_RE.match(value.strip().lower().rstrip(".")))


def first_domain(indicators: Iterable[str]) -> Optional[str]:
    """Return the first indicator that is a bare domain name, lowercased."""

    for indicator in indicators:
        candidate = indicator.strip().lower().rstrip(".")
        if is_domain_like(candidate):
            return candidate
    return None


def sld_tokens(name: str) -> List[str]:
    """Split the leftmost label of a domain or handle into alphanumeric tokens."""

    label = name.strip().lower().lstrip("@").split(".", 1)[0]
    return [token for token in _TOKEN_SPLIT_RE.split(label) if token]


__all__ = [
    "AGE_PREFIX",
    "CT_MARKERS",
    "LANDING_MARKERS",
    "YOUNG_DOMAIN_DAYS",
    "canonical_indicators",
    "contains_any",
    "corroborating_indicators",
    "domain_age_days",
    "first_domain",
    "has_ct_indicator",
    "has_landing_indicator",
    "has_young_domain",
    "is_domain_like",
    "sld_tokens",
]
