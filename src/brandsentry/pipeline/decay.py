"""Read-time temporal decay for findings that stop being re-corroborated.

Decay is linear: after a grace window of ``window_days`` whole days since the
last corroboration, confidence drops by ``points_per_day`` per additional
whole day, floored at zero. Once decayed confidence falls below
``severity_step_below`` the severity steps down one level. Stored findings are
never mutated; decay is recomputed from ``now`` on every read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, NamedTuple

from brandsentry.scope import DecayPolicy
from brandsentry.signals import Finding, RuleTraceEntry, Severity
from brandsentry.pipeline.rules import DECAY

_DAY = timedelta(days=1)


class DecayResult(NamedTuple):
    confidence: int
    severity: Severity
    elapsed_days: int
    penalty: int


def elapsed_days(last_corroborated_at: datetime, now: datetime) -> int:
    """Whole days between the last corroboration and ``now`` (never negative)."""

    if now <= last_corroborated_at:
        return 0
    return (now - last_corroborated_at) // _DAY


def decay(confidence: int, severity: Severity, last_corroborated_at: datetime, now: datetime, policy: DecayPolicy) -> DecayResult:
    """Return decayed confidence and severity; non-increasing in ``now``."""

    days = elapsed_days(last_corroborated_at, now)
    overdue = max(days - policy.window_days, 0)
    penalty = min(overdue * policy.points_per_day, confidence)
    decayed = confidence - penalty
    if penalty and decayed < policy.severity_step_below:
        severity = severity.step_down()
    return DecayResult(confidence=decayed, severity=severity, elapsed_days=days, penalty=penalty)


def apply_decay(finding: Finding, policy: DecayPolicy, now: datetime) -> Finding:
    """Return ``finding`` as seen at ``now``, with a trace entry when decay applied.

    Decay always starts from the undecayed values, so a finding read back from
    storage can be decayed again at a later ``now`` without compounding.
    """

    confidence = finding.confidence if finding.undecayed_confidence is None else finding.undecayed_confidence
    severity = finding.severity if finding.undecayed_severity is None else finding.undecayed_severity
    trace = [entry for entry in finding.rule_trace if entry.rule != DECAY]
    result = decay(confidence, severity, finding.last_corroborated_at, now, policy)
    if not result.penalty:
        if finding.undecayed_confidence is None:
            return finding
        return finding.model_copy(
            update={
                "confidence": confidence,
                "severity": severity,
                "rule_trace": trace,
                "undecayed_confidence": None,
                "undecayed_severity": None,
            }
        )
    effect = f"{result.elapsed_days}d since last corroboration: confidence -{result.penalty}"
    if result.severity is not severity:
        effect += f", severity {severity.value} -> {result.severity.value}"
    return finding.model_copy(
        update={
            "confidence": result.confidence,
            "severity": result.severity,
            "rule_trace": [*trace, RuleTraceEntry(rule=DECAY, effect=effect, delta=-result.penalty)],
            "undecayed_confidence": confidence,
            "undecayed_severity": severity,
        }
    )


def decay_findings(findings: Iterable[Finding], policy: DecayPolicy, now: datetime) -> List[Finding]:
    """Decay stored findings for display at ``now``; the inputs are left as stored."""

    return [apply_decay(finding, policy, now) for finding in findings]


__all__ = ["DecayResult", "apply_decay", "decay", "decay_findings", "elapsed_days"]
