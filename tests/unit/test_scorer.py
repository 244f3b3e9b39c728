"""Tests for per-signal scoring."""

from __future__ import annotations

from brandsentry.normalization import normalize
from brandsentry.pipeline import score, score_signals
from brandsentry.pipeline.scorer import FLAG_GENERIC_TOKEN, FLAG_OLD_DOMAIN, GENERIC_TOKEN_REASON, is_generic_candidate
from brandsentry.scope import validate
from brandsentry.signals import Severity


def _scored(make_raw, scope, **overrides):
    return score(normalize(make_raw(**overrides), scope), scope)


def test_base_policy_applies(make_raw, scope):
    result = _scored(make_raw, scope)
    assert result.confidence == 60
    assert result.severity == Severity.MEDIUM
    assert result.policy_flags == ()


def test_edit_distance_boost(make_raw, scope_data):
    scope_data["typosquat"] = {"distance_weight": 10}
    result = _scored(make_raw, validate(scope_data))
    assert result.confidence == 69
    assert any("edit distance 1" in note for note in result.notes)


def test_young_domain_boosts(make_raw, scope):
    young = _scored(make_raw, scope, indicators=["examp1e.com", "rdap_age_days=20"])
    assert young.confidence == 75
    assert young.severity == Severity.MEDIUM

    very_young = _scored(make_raw, scope, indicators=["examp1e.com", "rdap_age_days=3"])
    assert very_young.confidence == 85
    assert very_young.severity == Severity.HIGH


def test_confidence_clamped_to_100(make_raw, scope):
    result = _scored(make_raw, scope, confidence_hint=95, indicators=["examp1e.com", "rdap_age_days=1"])
    assert result.confidence == 100


def test_source_trust_multiplier(make_raw, scope_data):
    scope_data["source_trust"] = {"dns": 0.5}
    assert _scored(make_raw, validate(scope_data)).confidence == 30


def test_generic_token_candidate_is_downgraded(make_raw, scope):
    result = _scored(make_raw, scope, indicators=["example-login.com"], content="example-login.com")
    assert result.confidence == 60
    assert result.severity == Severity.MEDIUM
    assert result.suppression_reason == GENERIC_TOKEN_REASON
    assert FLAG_GENERIC_TOKEN in result.policy_flags


def test_generic_token_candidate_with_corroboration_is_kept(make_raw, scope):
    result = _scored(make_raw, scope, indicators=["example-login.com", "landing_page=match"])
    assert result.suppression_reason is None


def test_old_domain_prefers_digest(make_raw, scope):
    result = _scored(make_raw, scope, confidence_hint=90, indicators=["examp1e.com", "rdap_age_days=400"])
    assert result.confidence == 50
    assert FLAG_OLD_DOMAIN in result.policy_flags


def test_severity_never_exceeds_detector_ceiling(make_raw, scope):
    signal = normalize(
        make_raw(source="ct", detector="certificate", confidence_hint=99, indicators=["examp1e.com", "rdap_age_days=1"]),
        scope,
    )
    assert score(signal, scope).severity == Severity.MEDIUM


def test_score_signals_keeps_identity(make_raw, scope):
    signal = normalize(make_raw(), scope)
    [scored] = score_signals([signal], scope)
    assert scored.id == signal.id
    assert scored.dedupe_key == signal.dedupe_key
    assert "base typosquat" in scored.rationale


def test_is_generic_candidate():
    tokens = ("login", "secure")
    assert is_generic_candidate("example.com", "secure-example.com", tokens)
    assert not is_generic_candidate("example.com", "examp1e.com", tokens)
    assert not is_generic_candidate("example.com", "example-shop.com", tokens)
