"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations


class BrandSentryError(Exception):
    """Base class for all brandsentry errors."""


class ScopeError(BrandSentryError):
    """Scope is missing required fields or references disallowed kinds. Fatal."""


class CollectionError(BrandSentryError):
    """A source adapter timed out, exhausted its rate limit, or failed upstream.

    Non-fatal: the source contributes no evidence and is recorded as degraded.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class NormalizationError(BrandSentryError):
    """A raw evidence record is malformed. The record is skipped and counted."""


class HashingError(BrandSentryError):
    """Canonical serialization failed. Internal invariant violation, fatal."""


class PersistenceError(BrandSentryError):
    """The history store could not be read or written."""


class AlertError(BrandSentryError):
    """Alert dispatch to the configured webhook failed."""


__all__ = [
    "BrandSentryError",
    "ScopeError",
    "CollectionError",
    "NormalizationError",
    "HashingError",
    "PersistenceError",
    "AlertError",
]
