"""Pydantic models describing a client's authorization and tuning boundary."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from brandsentry.signals.models import Severity, SignalType

SOURCE_KINDS: Tuple[str, ...] = ("ct", "dns", "feeds", "fixture", "github", "offline", "paste", "rdap", "social")
OFFLINE_SOURCE_KINDS: Tuple[str, ...] = ("fixture", "offline")
DETECTOR_KINDS: Tuple[str, ...] = (
    "certificate",
    "code-leak",
    "impersonation",
    "mentions",
    "paste",
    "threat-feed",
    "typosquat",
)
DEMO_SOURCES: Tuple[str, ...] = ("fixture", "offline")
DEMO_DETECTORS: Tuple[str, ...] = ("typosquat",)

DEFAULT_GENERIC_TOKENS: Tuple[str, ...] = ("account", "billing", "login", "secure", "support", "verify")

# Built-in masks used whenever raw storage is off and the scope declares none.
DEFAULT_REDACTION_PATTERNS: Tuple[str, ...] = (
    r"https?://[^\s\"'<>]+",
    r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}",
    r"\b(?:ghp|gho|ghu|ghs|github_pat|xox[abpr]|sk_live|sk_test|AKIA)[A-Za-z0-9_\-]{8,}\b",
    r"(?i)\b(?:api[_-]?key|secret|token|passw(?:or)?d)\s*[:=]\s*[^\s,;]+",
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PrivacyRules(_Frozen):
    """Raw retention and redaction rules."""

    store_raw: bool = False
    redact_patterns: Tuple[str, ...] = ()
    max_evidence_retention_days: int = Field(default=30, ge=1)

    @property
    def effective_patterns(self) -> Tuple[str, ...]:
        """Patterns applied to outputs; built-ins fill in when raw storage is off and none are set."""

        if self.store_raw:
            return ()
        return self.redact_patterns or DEFAULT_REDACTION_PATTERNS


class TyposquatPolicy(_Frozen):
    """Escalation policy specific to typosquat findings."""

    generic_tokens: Tuple[str, ...] = DEFAULT_GENERIC_TOKENS
    old_domain_days: int = Field(default=180, ge=0)

    @field_validator("generic_tokens", mode="after")
    @classmethod
    def _lower_tokens(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        tokens = sorted({token.strip().lower() for token in value if token and token.strip()})
        return tuple(tokens) or DEFAULT_GENERIC_TOKENS


class DecayPolicy(_Frozen):
    """Linear confidence decay for findings that stop being re-corroborated."""

    window_days: int = Field(default=30, ge=0)
    points_per_day: int = Field(default=2, ge=0, le=100)
    severity_step_below: int = Field(default=40, ge=0, le=100)


class Policy(_Frozen):
    """Thresholds and suppression predicates consumed by the escalator."""

    min_confidence_alert: int = Field(default=80, ge=0, le=100)
    min_severity_alert: Severity = Severity.HIGH
    digest_frequency: Literal["hourly", "daily", "weekly"] = "daily"
    near_threshold_band: int = Field(default=10, ge=0, le=100)
    alert_on_new_only: bool = False
    blocked_subjects: Tuple[str, ...] = ()
    blocked_signal_types: Tuple[SignalType, ...] = ()
    typosquat: TyposquatPolicy = Field(default_factory=TyposquatPolicy)
    decay: DecayPolicy = Field(default_factory=DecayPolicy)

    @field_validator("min_severity_alert", mode="before")
    @classmethod
    def _parse_severity(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("blocked_subjects", mode="after")
    @classmethod
    def _lower_subjects(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(sorted({item.strip().lower() for item in value if item and item.strip()}))

    @field_validator("blocked_signal_types", mode="after")
    @classmethod
    def _sort_types(cls, value: Tuple[SignalType, ...]) -> Tuple[SignalType, ...]:
        return tuple(sorted(set(value), key=lambda item: item.value))


class RateLimit(_Frozen):
    """Per-source collection limits."""

    min_interval_ms: int = Field(default=1000, ge=0)
    max_concurrency: int = Field(default=1, ge=1)


class TyposquatTuning(_Frozen):
    """Detector-specific tuning for typosquat candidates."""

    locale: Literal["us", "es", "fr"] = "us"
    distance_weight: int = Field(default=10, ge=0, le=100)


class RuleSpec(_Frozen):
    """Declarative correlation rule: a predicate over a subject group plus an effect.

    The predicate matches when every type in ``all_of`` is present, the group
    contains no other types if ``only`` is set, and (when ``indicator_any`` is
    non-empty) at least one member indicator contains one of the substrings.
    """

    name: str
    title: str = ""
    priority: int = 100
    all_of: Tuple[SignalType, ...]
    only: bool = False
    indicator_any: Tuple[str, ...] = ()
    severity_floor: Optional[Severity] = None
    confidence_delta: int = Field(default=0, ge=-100, le=100)
    never_alert: bool = False

    @field_validator("name", mode="after")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("rule name must not be empty")
        return stripped

    @field_validator("severity_floor", mode="before")
    @classmethod
    def _parse_floor(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("all_of", mode="after")
    @classmethod
    def _require_types(cls, value: Tuple[SignalType, ...]) -> Tuple[SignalType, ...]:
        if not value:
            raise ValueError("rule must name at least one signal type in all_of")
        return tuple(sorted(set(value), key=lambda item: item.value))

    @field_validator("indicator_any", mode="after")
    @classmethod
    def _lower_indicators(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(item.strip().lower() for item in value if item and item.strip())

    def order_key(self) -> Tuple[int, str]:
        return (self.priority, self.name)


class Scope(_Frozen):
    """Validated, immutable scope for one authorized client run."""

    brand_terms: Tuple[str, ...] = ()
    domains: Tuple[str, ...] = ()
    products: Tuple[str, ...] = ()
    official_handles: Tuple[str, ...] = ()
    allowed_sources: Tuple[str, ...] = ()
    allowed_detectors: Tuple[str, ...] = ()
    watch_keywords: Tuple[str, ...] = ()
    negative_keywords: Tuple[str, ...] = ()
    privacy: PrivacyRules = Field(default_factory=PrivacyRules)
    policy: Policy = Field(default_factory=Policy)
    rate_limits: Dict[str, RateLimit] = Field(default_factory=dict)
    source_trust: Dict[str, float] = Field(default_factory=dict)
    typosquat: TyposquatTuning = Field(default_factory=TyposquatTuning)
    correlation_rules: Tuple[RuleSpec, ...] = ()
    demo: bool = False

    def allows_source(self, source: str) -> bool:
        return source.strip().lower() in self.allowed_sources

    def allows_detector(self, detector: str) -> bool:
        return detector.strip().lower() in self.allowed_detectors

    def trust_for(self, source: str) -> float:
        return self.source_trust.get(source.strip().lower(), 1.0)

    def rate_limit_for(self, source: str) -> RateLimit:
        return self.rate_limits.get(source.strip().lower(), RateLimit())

    def hash_payload(self) -> Dict[str, Any]:
        """Canonical payload for ``scope_hash``; collections are already sorted."""

        payload = self.model_dump(mode="json")
        payload["rate_limits"] = dict(sorted(payload["rate_limits"].items()))
        payload["source_trust"] = dict(sorted(payload["source_trust"].items()))
        return payload


__all__ = [
    "DEFAULT_GENERIC_TOKENS",
    "DEFAULT_REDACTION_PATTERNS",
    "DEMO_DETECTORS",
    "DEMO_SOURCES",
    "DETECTOR_KINDS",
    "OFFLINE_SOURCE_KINDS",
    "SOURCE_KINDS",
    "DecayPolicy",
    "Policy",
    "PrivacyRules",
    "RateLimit",
    "RuleSpec",
    "Scope",
    "TyposquatPolicy",
    "TyposquatTuning",
]
