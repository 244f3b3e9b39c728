"""Tests for scope validation, demo mode, and selection enforcement."""

from __future__ import annotations

from pathlib import Path

import pytest

from brandsentry.errors import ScopeError
from brandsentry.pipeline import rule_set
from brandsentry.scope import (
    DEMO_DETECTORS,
    DEMO_SOURCES,
    enforce_selection,
    load_scope,
    resolve_scope,
    validate,
)

REPO_ROOT = Path(__file__).resolve().parents[2]


def test_validate_canonicalizes_string_sets(scope):
    assert scope.domains == ("example.com",)
    assert scope.brand_terms == ("example",)
    assert scope.allowed_sources == tuple(sorted(scope.allowed_sources))


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"domains": [], "brand_terms": []}, "domains"),
        ({"allowed_sources": ["ct", "darkweb"]}, "darkweb"),
        ({"allowed_detectors": ["typosquat", "port-scan"]}, "port-scan"),
        ({"rate_limits": {"github": {"min_interval_ms": 10}}}, "github"),
        ({"source_trust": {"ct": 3.0}}, "source_trust"),
        ({"privacy": {"redact_patterns": ["("]}}, "redaction pattern"),
        ({"policy": {"min_confidence_alert": 150}}, "min_confidence_alert"),
    ],
)
def test_invalid_scopes_raise_scope_error(scope_data, overrides, message):
    scope_data.update(overrides)
    with pytest.raises(ScopeError, match=message):
        validate(scope_data)


def test_duplicate_rule_names_rejected(scope_data):
    rule = {"name": "twice", "all_of": ["code-leak"], "confidence_delta": 5}
    scope_data["correlation_rules"] = [rule, rule]
    with pytest.raises(ScopeError, match="duplicate"):
        validate(scope_data)


def test_custom_rule_cannot_shadow_builtin(scope_data):
    scope_data["correlation_rules"] = [{"name": "typosquat+cert+landing", "all_of": ["code-leak"]}]
    with pytest.raises(ScopeError, match="reserved"):
        rule_set(validate(scope_data))


def test_demo_without_scope_uses_offline_floor():
    scope = resolve_scope(None, demo=True)
    assert scope.demo is True
    assert scope.allowed_sources == DEMO_SOURCES
    assert scope.allowed_detectors == DEMO_DETECTORS
    assert scope.privacy.store_raw is False


def test_scope_required_outside_demo():
    with pytest.raises(ScopeError):
        resolve_scope(None, demo=False)


def test_demo_floor_overrides_supplied_scope(scope_data):
    scope_data["privacy"] = {"store_raw": True}
    scope = resolve_scope(scope_data, demo=True)
    assert scope.allowed_sources == DEMO_SOURCES
    assert scope.privacy.store_raw is False
    assert scope.domains == ("example.com",)


def test_enforce_selection_rejects_detectors_outside_allowlist(scope):
    with pytest.raises(ScopeError, match="code-leak"):
        enforce_selection(scope, detectors=["typosquat", "code-leak"])
    detectors, sources = enforce_selection(scope, detectors=["Typosquat"], sources=None)
    assert detectors == ("typosquat",)
    assert sources == scope.allowed_sources


def test_example_scope_file_loads():
    scope = load_scope(REPO_ROOT / "clients" / "example.toml")
    assert scope.negative_keywords == ("careers",)
    assert scope.typosquat.distance_weight == 0


def test_missing_scope_file_is_scope_error(tmp_path):
    with pytest.raises(ScopeError, match="not found"):
        load_scope(tmp_path / "missing.toml")
