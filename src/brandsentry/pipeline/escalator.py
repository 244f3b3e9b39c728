"""Policy-gated disposition of findings."""

from __future__ import annotations

from typing import Iterable, List, NamedTuple, Tuple

from brandsentry.pipeline.rules import CORROBORATION_GATE
from brandsentry.pipeline.scorer import FLAG_OLD_DOMAIN
from brandsentry.scope import Policy
from brandsentry.signals import Disposition, Finding, Severity


class Escalation(NamedTuple):
    disposition: Disposition
    reasons: Tuple[str, ...]
    gates: Tuple[str, ...]


def _gates(finding: Finding, policy: Policy) -> Tuple[str, ...]:
    return (
        f"min_severity_alert={policy.min_severity_alert.value} (actual={finding.severity.value})",
        f"min_confidence_alert={policy.min_confidence_alert} (actual={finding.confidence})",
    )


def _policy_blocks(finding: Finding, policy: Policy) -> List[str]:
    reasons = []
    if finding.subject in policy.blocked_subjects:
        reasons.append(f"policy block: subject {finding.subject}")
    for signal_type in finding.signal_types:
        if signal_type in policy.blocked_signal_types:
            reasons.append(f"policy block: signal type {signal_type.value}")
    return reasons


def _threshold_reason(severity_ok: bool, confidence_ok: bool) -> str:
    if not severity_ok and not confidence_ok:
        return "policy: severity and confidence below thresholds"
    if not severity_ok:
        return "policy: severity below threshold"
    return "policy: confidence below threshold"


def escalate(finding: Finding, policy: Policy) -> Escalation:
    """Assign a disposition to ``finding``.

    Precedence: Suppressed (suppression reasons or an explicit policy block),
    then Digest for findings flagged prefer-digest, then Alert when both
    thresholds are met and nothing blocks it, then Investigate for MEDIUM and
    above or near-threshold confidence, otherwise Digest. Alert-eligible
    findings that lack corroboration, are blocked by a rule, or carry no new
    signals under ``alert_on_new_only`` fall back to Investigate with the
    reason recorded.
    """

    gates = _gates(finding, policy)

    suppressed = [f"suppressed: {reason}" for reason in finding.suppression_reasons]
    suppressed.extend(_policy_blocks(finding, policy))
    if suppressed:
        return Escalation(Disposition.SUPPRESSED, tuple(suppressed), gates)

    if FLAG_OLD_DOMAIN in finding.policy_flags:
        return Escalation(Disposition.DIGEST, ("policy: typosquat.old_domain_days",), gates)

    severity_ok = finding.severity.at_least(policy.min_severity_alert)
    confidence_ok = finding.confidence >= policy.min_confidence_alert
    gate_downgraded = any(entry.rule == CORROBORATION_GATE for entry in finding.rule_trace)

    if confidence_ok and (severity_ok or gate_downgraded):
        blockers = []
        if not finding.corroborated:
            blockers.append("corroboration: alert requires at least two distinct signal types")
        if finding.alert_blocked_by:
            blockers.append(f"rule {finding.alert_blocked_by}: never alerts alone")
        if policy.alert_on_new_only and finding.new_signal_count == 0:
            blockers.append("policy: alert_on_new_only and no new signals")
        if not blockers and severity_ok:
            return Escalation(Disposition.ALERT, ("policy: confidence and severity meet alert thresholds",), gates)
        return Escalation(Disposition.INVESTIGATE, tuple(blockers), gates)

    reason = _threshold_reason(severity_ok, confidence_ok)
    near_threshold = finding.confidence >= policy.min_confidence_alert - policy.near_threshold_band
    if finding.severity.at_least(Severity.MEDIUM) or near_threshold:
        return Escalation(Disposition.INVESTIGATE, (reason,), gates)
    return Escalation(Disposition.DIGEST, (reason,), gates)


def apply_escalation(finding: Finding, escalation: Escalation) -> Finding:
    return finding.model_copy(
        update={
            "disposition": escalation.disposition,
            "disposition_reasons": list(escalation.reasons),
            "policy_gates": list(escalation.gates),
        }
    )


def escalate_findings(findings: Iterable[Finding], policy: Policy) -> List[Finding]:
    """Escalate every finding, preserving deterministic order."""

    escalated = [apply_escalation(finding, escalate(finding, policy)) for finding in findings]
    return sorted(escalated, key=Finding.sort_key)


__all__ = ["Escalation", "apply_escalation", "escalate", "escalate_findings"]
