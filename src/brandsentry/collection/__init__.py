"""Collection boundary: source adapters that produce raw evidence."""

from brandsentry.collection.base import SourceAdapter, SourceBatch
from brandsentry.collection.collector import (
    REASON_NO_ADAPTER,
    REASON_NO_NETWORK,
    CollectionResult,
    Collector,
    default_adapters,
)
from brandsentry.collection.fixture import FixtureSource
from brandsentry.collection.offline import OfflineTyposquatSource
from brandsentry.collection.rate_limit import RateLimiter

__all__ = [
    "REASON_NO_ADAPTER",
    "REASON_NO_NETWORK",
    "CollectionResult",
    "Collector",
    "FixtureSource",
    "OfflineTyposquatSource",
    "RateLimiter",
    "SourceAdapter",
    "SourceBatch",
    "default_adapters",
]
