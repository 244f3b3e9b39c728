"""Declarative correlation rules.

Rules are data (:class:`~brandsentry.scope.RuleSpec`): a predicate over a
subject group's signal types and indicators plus an effect. Scopes may add
rules of their own; evaluation order is always ``(priority, name)``.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from brandsentry.errors import ScopeError
from brandsentry.scope import RuleSpec, Scope
from brandsentry.signals import Severity, SignalType
from brandsentry.signals.indicators import LANDING_MARKERS, contains_any

CORROBORATION_GATE = "corroboration-gate"
DECAY = "temporal-decay"

BASELINE_RULES: Tuple[RuleSpec, ...] = (
    RuleSpec(
        name="typosquat+cert+landing",
        title="Potential impersonation infrastructure for {subject}",
        priority=10,
        all_of=(SignalType.TYPOSQUAT_DOMAIN, SignalType.NEW_CERTIFICATE),
        indicator_any=LANDING_MARKERS,
        severity_floor=Severity.HIGH,
        confidence_delta=25,
    ),
    RuleSpec(
        name="mention-spike-only",
        title="Mention spike for {subject}",
        priority=20,
        all_of=(SignalType.MENTION_SPIKE,),
        only=True,
        severity_floor=Severity.LOW,
        never_alert=True,
    ),
    RuleSpec(
        name="impersonation+mention-spike",
        title="Impersonation with mention spike for {subject}",
        priority=30,
        all_of=(SignalType.IMPERSONATION_ACCOUNT, SignalType.MENTION_SPIKE),
        severity_floor=Severity.MEDIUM,
        confidence_delta=15,
    ),
)

_RESERVED_NAMES = frozenset({CORROBORATION_GATE, DECAY, *(rule.name for rule in BASELINE_RULES)})


def rule_set(scope: Scope | None = None) -> Tuple[RuleSpec, ...]:
    """Baseline rules plus any scope-defined rules, in evaluation order."""

    custom = tuple(scope.correlation_rules) if scope is not None else ()
    clashes = sorted(rule.name for rule in custom if rule.name in _RESERVED_NAMES)
    if clashes:
        raise ScopeError(f"correlation rule name(s) reserved by built-in rules: {', '.join(clashes)}")
    return tuple(sorted((*BASELINE_RULES, *custom), key=RuleSpec.order_key))


def matches(rule: RuleSpec, types: Iterable[SignalType], indicators: Sequence[str]) -> bool:
    """Evaluate ``rule``'s predicate against a subject group."""

    present = set(types)
    required = set(rule.all_of)
    if not required <= present:
        return False
    if rule.only and present != required:
        return False
    if rule.indicator_any and not contains_any(indicators, rule.indicator_any):
        return False
    return True


def describe_effect(rule: RuleSpec, *, floor_applied: bool) -> str:
    """Human-readable effect of a fired rule for the rule trace."""

    parts = []
    if rule.severity_floor is not None:
        if floor_applied:
            parts.append(f"severity floor {rule.severity_floor.value}")
        else:
            parts.append(f"severity floor {rule.severity_floor.value} skipped (floor already set)")
    if rule.confidence_delta:
        parts.append(f"confidence {rule.confidence_delta:+d}")
    if rule.never_alert:
        parts.append("never alerts alone")
    return "; ".join(parts) or "matched"


__all__ = ["BASELINE_RULES", "CORROBORATION_GATE", "DECAY", "describe_effect", "matches", "rule_set"]
