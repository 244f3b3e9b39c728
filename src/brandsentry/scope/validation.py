"""Scope loading, validation, and the demo-mode safety floor."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from brandsentry.errors import ScopeError
from brandsentry.scope.models import (
    DEFAULT_REDACTION_PATTERNS,
    DEMO_DETECTORS,
    DEMO_SOURCES,
    DETECTOR_KINDS,
    SOURCE_KINDS,
    PrivacyRules,
    Scope,
)
from brandsentry.scope.redaction import compile_patterns

LOGGER = logging.getLogger(__name__)

_SET_FIELDS: Tuple[str, ...] = (
    "brand_terms",
    "domains",
    "products",
    "official_handles",
    "allowed_sources",
    "allowed_detectors",
    "watch_keywords",
    "negative_keywords",
)

DEMO_DOMAIN = "example.com"
DEMO_BRAND_TERM = "example"


def _string_set(value: Any, field: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ScopeError(f"scope field '{field}' must be a list of strings")
    items = set()
    for item in value:
        if not isinstance(item, str):
            raise ScopeError(f"scope field '{field}' must contain only strings, got {type(item).__name__}")
        cleaned = item.strip().lower()
        if field == "domains":
            cleaned = cleaned.rstrip(".")
        if cleaned:
            items.add(cleaned)
    return tuple(sorted(items))


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "scope"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "invalid scope: " + "; ".join(problems)


def _check_kinds(values: Sequence[str], known: Sequence[str], label: str) -> None:
    if not values:
        raise ScopeError(f"allowed_{label}s must list at least one {label} kind")
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ScopeError(
            f"allowed_{label}s references unknown {label} kind(s): {', '.join(unknown)} "
            f"(known: {', '.join(known)})"
        )


def _check_source_keys(mapping: Mapping[str, Any], scope: Scope, field: str) -> None:
    stray = sorted(set(mapping) - set(scope.allowed_sources))
    if stray:
        raise ScopeError(f"{field} references source(s) outside allowed_sources: {', '.join(stray)}")


def validate(raw_scope: Mapping[str, Any]) -> Scope:
    """Validate a raw scope mapping and return an immutable :class:`Scope`.

    Raises:
        ScopeError: If a required field is missing, a source or detector kind
            is unknown, a redaction pattern does not compile, or a per-source
            setting references a source outside the allowlist.
    """

    if not isinstance(raw_scope, Mapping):
        raise ScopeError("scope must be a mapping of fields")

    data = dict(raw_scope)
    for field in _SET_FIELDS:
        data[field] = _string_set(data.get(field), field)
    for field in ("rate_limits", "source_trust"):
        if isinstance(data.get(field), Mapping):
            data[field] = {str(key).strip().lower(): value for key, value in data[field].items()}

    try:
        scope = Scope.model_validate(data)
    except ValidationError as exc:
        raise ScopeError(_format_validation_error(exc)) from exc

    if not scope.domains and not scope.brand_terms:
        raise ScopeError("scope must declare at least one of 'domains' or 'brand_terms'")
    _check_kinds(scope.allowed_sources, SOURCE_KINDS, "source")
    _check_kinds(scope.allowed_detectors, DETECTOR_KINDS, "detector")
    _check_source_keys(scope.rate_limits, scope, "rate_limits")
    _check_source_keys(scope.source_trust, scope, "source_trust")
    for source, multiplier in scope.source_trust.items():
        if not 0.0 <= multiplier <= 2.0:
            raise ScopeError(f"source_trust for '{source}' must be between 0.0 and 2.0, got {multiplier}")
    compile_patterns(scope.privacy.redact_patterns)

    names = [rule.name for rule in scope.correlation_rules]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ScopeError(f"correlation_rules contains duplicate rule name(s): {', '.join(duplicates)}")

    LOGGER.debug(
        "Validated scope domains=%d brand_terms=%d sources=%s detectors=%s",
        len(scope.domains),
        len(scope.brand_terms),
        ",".join(scope.allowed_sources),
        ",".join(scope.allowed_detectors),
    )
    return scope


def read_scope_file(path: Path | str) -> dict[str, Any]:
    """Parse a TOML scope file into a raw mapping."""

    scope_path = Path(path).expanduser()
    try:
        with scope_path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ScopeError(f"scope file not found: {scope_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ScopeError(f"invalid TOML in scope file {scope_path}: {exc}") from exc


def load_scope(path: Path | str) -> Scope:
    """Read and validate a TOML scope file."""

    return validate(read_scope_file(path))


def apply_demo_floor(scope: Scope) -> Scope:
    """Force the offline-only subset and redaction, whatever the scope says."""

    patterns = tuple(dict.fromkeys((*DEFAULT_REDACTION_PATTERNS, *scope.privacy.redact_patterns)))
    privacy = PrivacyRules(
        store_raw=False,
        redact_patterns=patterns,
        max_evidence_retention_days=scope.privacy.max_evidence_retention_days,
    )
    return scope.model_copy(
        update={
            "allowed_sources": DEMO_SOURCES,
            "allowed_detectors": DEMO_DETECTORS,
            "privacy": privacy,
            "rate_limits": {key: value for key, value in scope.rate_limits.items() if key in DEMO_SOURCES},
            "source_trust": {key: value for key, value in scope.source_trust.items() if key in DEMO_SOURCES},
            "demo": True,
        }
    )


def demo_scope() -> Scope:
    """Return the built-in scope used when demo mode runs without a scope file."""

    base = validate(
        {
            "brand_terms": [DEMO_BRAND_TERM],
            "domains": [DEMO_DOMAIN],
            "allowed_sources": list(DEMO_SOURCES),
            "allowed_detectors": list(DEMO_DETECTORS),
        }
    )
    return apply_demo_floor(base)


def resolve_scope(raw_scope: Optional[Mapping[str, Any]], *, demo: bool = False) -> Scope:
    """Return the scope a run may use.

    Without a scope only demo mode is permitted; demo mode always applies the
    safety floor, including to an explicitly supplied scope.
    """

    if raw_scope is None:
        if not demo:
            raise ScopeError("a scope is required unless demo mode is enabled")
        return demo_scope()
    scope = validate(raw_scope)
    return apply_demo_floor(scope) if demo else scope


def enforce_selection(
    scope: Scope,
    *,
    detectors: Optional[Iterable[str]] = None,
    sources: Optional[Iterable[str]] = None,
) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Return the detectors and sources to run, rejecting anything outside the allowlists."""

    def _select(requested: Optional[Iterable[str]], allowed: Tuple[str, ...], label: str) -> Tuple[str, ...]:
        if requested is None:
            return allowed
        chosen = tuple(sorted({item.strip().lower() for item in requested if item and item.strip()}))
        outside = [item for item in chosen if item not in allowed]
        if outside:
            raise ScopeError(f"{label}(s) not permitted by scope allowed_{label}s: {', '.join(outside)}")
        return chosen

    return (
        _select(detectors, scope.allowed_detectors, "detector"),
        _select(sources, scope.allowed_sources, "source"),
    )


__all__ = [
    "DEMO_BRAND_TERM",
    "DEMO_DOMAIN",
    "apply_demo_floor",
    "demo_scope",
    "enforce_selection",
    "load_scope",
    "read_scope_file",
    "resolve_scope",
    "validate",
]
