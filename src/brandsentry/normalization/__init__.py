"""Normalization of raw evidence into canonical signals."""

from brandsentry.normalization.normalizer import (
    NormalizationBatch,
    Skip,
    evidence_record,
    negative_keyword_hit,
    normalize,
    normalize_batch,
)

__all__ = [
    "NormalizationBatch",
    "Skip",
    "evidence_record",
    "negative_keyword_hit",
    "normalize",
    "normalize_batch",
]
