"""Core pipeline stages and the runner that drives them."""

from brandsentry.pipeline.correlator import correlate, correlate_group
from brandsentry.pipeline.decay import apply_decay, decay, decay_findings
from brandsentry.pipeline.dedupe import DedupeResult, dedupe
from brandsentry.pipeline.escalator import Escalation, escalate, escalate_findings
from brandsentry.pipeline.manifest import RunWindow, build
from brandsentry.pipeline.rules import BASELINE_RULES, rule_set
from brandsentry.pipeline.runner import (
    MANIFEST_FILE,
    PipelineOutcome,
    PipelineRunner,
    RunConfig,
    RunResult,
    fixed_clock,
    system_clock,
)
from brandsentry.pipeline.scorer import Score, score, score_signals

__all__ = [
    "BASELINE_RULES",
    "MANIFEST_FILE",
    "DedupeResult",
    "Escalation",
    "PipelineOutcome",
    "PipelineRunner",
    "RunConfig",
    "RunResult",
    "RunWindow",
    "Score",
    "apply_decay",
    "decay_findings",
    "build",
    "correlate",
    "correlate_group",
    "decay",
    "dedupe",
    "escalate",
    "escalate_findings",
    "fixed_clock",
    "rule_set",
    "score",
    "score_signals",
    "system_clock",
]
