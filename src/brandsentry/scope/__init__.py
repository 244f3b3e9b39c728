"""Client scope: the authorization and tuning boundary for a run."""

from brandsentry.scope.models import (
    DEFAULT_REDACTION_PATTERNS,
    DEMO_DETECTORS,
    DEMO_SOURCES,
    DETECTOR_KINDS,
    OFFLINE_SOURCE_KINDS,
    SOURCE_KINDS,
    DecayPolicy,
    Policy,
    PrivacyRules,
    RateLimit,
    RuleSpec,
    Scope,
    TyposquatPolicy,
    TyposquatTuning,
)
from brandsentry.scope.redaction import REDACTED, Redactor
from brandsentry.scope.validation import (
    apply_demo_floor,
    demo_scope,
    enforce_selection,
    load_scope,
    read_scope_file,
    resolve_scope,
    validate,
)

__all__ = [
    "DEFAULT_REDACTION_PATTERNS",
    "DEMO_DETECTORS",
    "DEMO_SOURCES",
    "DETECTOR_KINDS",
    "OFFLINE_SOURCE_KINDS",
    "REDACTED",
    "SOURCE_KINDS",
    "DecayPolicy",
    "Policy",
    "PrivacyRules",
    "RateLimit",
    "Redactor",
    "RuleSpec",
    "Scope",
    "TyposquatPolicy",
    "TyposquatTuning",
    "apply_demo_floor",
    "demo_scope",
    "enforce_selection",
    "load_scope",
    "read_scope_file",
    "resolve_scope",
    "validate",
]
