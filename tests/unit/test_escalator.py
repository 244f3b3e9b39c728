"""Tests for policy-gated escalation."""

from __future__ import annotations

from datetime import datetime, timezone

from brandsentry.pipeline import escalate
from brandsentry.pipeline.rules import CORROBORATION_GATE
from brandsentry.pipeline.scorer import FLAG_OLD_DOMAIN
from brandsentry.scope import Policy
from brandsentry.signals import Disposition, Finding, RuleTraceEntry, Severity, SignalType

WHEN = datetime(2024, 4, 30, tzinfo=timezone.utc)


def _finding(**overrides) -> Finding:
    fields = {
        "id": "fnd_test",
        "subject": "example.com",
        "title": "test",
        "signal_ids": ["sig_a", "sig_b"],
        "signal_types": [SignalType.NEW_CERTIFICATE, SignalType.TYPOSQUAT_DOMAIN],
        "confidence": 85,
        "severity": Severity.HIGH,
        "corroborated": True,
        "new_signal_count": 2,
        "last_corroborated_at": WHEN,
    }
    fields.update(overrides)
    return Finding(**fields)


def test_alert_when_thresholds_met_and_corroborated():
    result = escalate(_finding(), Policy())
    assert result.disposition == Disposition.ALERT
    assert len(result.gates) == 2


def test_suppression_takes_precedence_over_alert():
    result = escalate(_finding(suppression_reasons=["generic-token candidate without corroboration"]), Policy())
    assert result.disposition == Disposition.SUPPRESSED


def test_policy_blocks_suppress():
    assert escalate(_finding(), Policy(blocked_subjects=["Example.com"])).disposition == Disposition.SUPPRESSED
    blocked = Policy(blocked_signal_types=[SignalType.NEW_CERTIFICATE])
    assert escalate(_finding(), blocked).disposition == Disposition.SUPPRESSED


def test_old_domain_flag_routes_to_digest():
    result = escalate(_finding(policy_flags=[FLAG_OLD_DOMAIN]), Policy())
    assert result.disposition == Disposition.DIGEST


def test_uncorroborated_gate_downgrade_investigates():
    finding = _finding(
        signal_types=[SignalType.TYPOSQUAT_DOMAIN],
        severity=Severity.MEDIUM,
        corroborated=False,
        rule_trace=[RuleTraceEntry(rule=CORROBORATION_GATE, effect="severity high -> medium")],
    )
    result = escalate(finding, Policy())
    assert result.disposition == Disposition.INVESTIGATE
    assert any("corroboration" in reason for reason in result.reasons)


def test_never_alert_rule_blocks_alert():
    result = escalate(_finding(alert_blocked_by="mention-spike-only"), Policy())
    assert result.disposition == Disposition.INVESTIGATE


def test_alert_on_new_only_demotes_repeats():
    result = escalate(_finding(new_signal_count=0), Policy(alert_on_new_only=True))
    assert result.disposition == Disposition.INVESTIGATE


def test_near_threshold_investigates_and_low_goes_to_digest():
    assert escalate(_finding(confidence=72, severity=Severity.LOW), Policy()).disposition == Disposition.INVESTIGATE
    assert escalate(_finding(confidence=40, severity=Severity.LOW), Policy()).disposition == Disposition.DIGEST
    assert escalate(_finding(confidence=40, severity=Severity.MEDIUM), Policy()).disposition == Disposition.INVESTIGATE
