"""Subject-group correlation of scored signals into findings."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from brandsentry.identity import derive_finding_id
from brandsentry.pipeline.decay import apply_decay
from brandsentry.pipeline.rules import CORROBORATION_GATE, describe_effect, matches, rule_set
from brandsentry.scope import RuleSpec, Scope
from brandsentry.signals import Finding, RuleTraceEntry, Severity, Signal, SignalType

LOGGER = logging.getLogger(__name__)

MIN_CORROBORATING_TYPES = 2


def group_by_subject(signals: Iterable[Signal]) -> Dict[str, List[Signal]]:
    """Group signals by subject; groups and members come back in deterministic order."""

    grouped: Dict[str, List[Signal]] = defaultdict(list)
    for signal in signals:
        grouped[signal.subject].append(signal)
    return {subject: sorted(grouped[subject], key=Signal.sort_key) for subject in sorted(grouped)}


def _distinct_types(signals: Sequence[Signal]) -> List[SignalType]:
    return sorted({signal.signal_type for signal in signals}, key=lambda item: item.value)


def _title(subject: str, types: Sequence[SignalType], fired: Sequence[RuleSpec]) -> str:
    for rule in fired:
        if rule.title:
            return rule.title.format(subject=subject)
    return f"{', '.join(item.value for item in types)} for {subject}"


def correlate_group(subject: str, members: Sequence[Signal], rules: Sequence[RuleSpec]) -> Finding:
    """Correlate one subject group into a finding.

    Members carrying a suppression reason are set aside when unsuppressed
    members exist; a group of only suppressed members yields a finding that
    carries their reasons.
    """

    active = [signal for signal in members if not signal.suppression_reason] or list(members)
    suppressed_only = all(signal.suppression_reason for signal in active)
    types = _distinct_types(active)
    indicators = [indicator for signal in active for indicator in signal.indicators]

    base_confidence = max(signal.confidence for signal in active)
    severity = Severity.highest([signal.severity for signal in active])
    trace = [
        RuleTraceEntry(
            rule="base",
            effect=f"{len(active)} signal(s): max confidence {base_confidence}, highest severity {severity.value}",
        )
    ]

    fired: List[RuleSpec] = []
    floor_set = False
    total_delta = 0
    alert_blocked_by: Optional[str] = None
    for rule in rules:
        if not matches(rule, types, indicators):
            continue
        fired.append(rule)
        floor_applied = rule.severity_floor is not None and not floor_set
        if floor_applied:
            floor_set = True
            if not severity.at_least(rule.severity_floor):
                severity = rule.severity_floor
        total_delta += rule.confidence_delta
        if rule.never_alert and alert_blocked_by is None:
            alert_blocked_by = rule.name
        trace.append(
            RuleTraceEntry(
                rule=rule.name,
                effect=describe_effect(rule, floor_applied=floor_applied),
                delta=rule.confidence_delta,
            )
        )

    confidence = min(max(base_confidence + total_delta, 0), 100)
    corroborated = len(types) >= MIN_CORROBORATING_TYPES
    if severity.at_least(Severity.HIGH) and not corroborated:
        trace.append(
            RuleTraceEntry(
                rule=CORROBORATION_GATE,
                effect=(
                    f"severity {severity.value} -> medium: "
                    f"requires {MIN_CORROBORATING_TYPES} distinct signal types, found {len(types)}"
                ),
            )
        )
        severity = Severity.MEDIUM

    signal_ids = sorted(signal.id for signal in active)
    return Finding(
        id=derive_finding_id(subject, signal_ids),
        subject=subject,
        title=_title(subject, types, fired),
        signal_ids=signal_ids,
        signal_types=types,
        confidence=confidence,
        severity=severity,
        matched_rules=[rule.name for rule in fired],
        rule_trace=trace,
        corroborated=corroborated,
        alert_blocked_by=alert_blocked_by,
        suppression_reasons=sorted({signal.suppression_reason for signal in active if signal.suppression_reason})
        if suppressed_only
        else [],
        policy_flags=sorted({flag for signal in active for flag in signal.policy_flags}),
        new_signal_count=sum(1 for signal in active if not signal.is_repeat),
        last_corroborated_at=max(signal.timestamp for signal in active),
    )


def correlate(
    signals: Sequence[Signal],
    *,
    scope: Optional[Scope] = None,
    now: Optional[datetime] = None,
) -> List[Finding]:
    """Correlate signals into one finding per subject, sorted by id.

    When ``now`` is given (and a scope supplies the decay policy), temporal
    decay is applied to the returned findings.
    """

    rules = rule_set(scope)
    findings = []
    for subject, members in group_by_subject(signals).items():
        finding = correlate_group(subject, members, rules)
        if now is not None and scope is not None:
            finding = apply_decay(finding, scope.policy.decay, now)
        findings.append(finding)
    findings.sort(key=Finding.sort_key)
    LOGGER.debug("Correlated %d signal(s) into %d finding(s)", len(signals), len(findings))
    return findings


__all__ = ["MIN_CORROBORATING_TYPES", "correlate", "correlate_group", "group_by_subject"]
