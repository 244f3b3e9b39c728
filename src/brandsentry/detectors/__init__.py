"""Pluggable detectors that interpret raw evidence into signals."""

from brandsentry.detectors.base import BasePolicy, Detector, DomainDetector, Interpretation
from brandsentry.detectors.registry import (
    DETECTORS,
    detectors_for,
    get_detector,
    signal_types_for,
)
from brandsentry.detectors.typosquat import TyposquatDetector, permutations

__all__ = [
    "DETECTORS",
    "BasePolicy",
    "Detector",
    "DomainDetector",
    "Interpretation",
    "TyposquatDetector",
    "detectors_for",
    "get_detector",
    "permutations",
    "signal_types_for",
]
