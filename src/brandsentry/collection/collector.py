"""Concurrent collection boundary.

Adapters run on a thread pool, each wrapped in its source's rate limiter.
Everything is gathered (or times out) before the core pipeline starts; a
source that fails or times out contributes no evidence and is reported as
degraded.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from brandsentry.collection.base import SourceAdapter, SourceBatch
from brandsentry.collection.fixture import FixtureSource
from brandsentry.collection.offline import OfflineTyposquatSource
from brandsentry.collection.rate_limit import RateLimiter
from brandsentry.errors import CollectionError
from brandsentry.observability import Observability, get_observability
from brandsentry.pipeline.manifest import RunWindow
from brandsentry.scope import OFFLINE_SOURCE_KINDS, Scope
from brandsentry.settings import Settings, get_settings
from brandsentry.signals import DegradedSource, RawEvidence

LOGGER = logging.getLogger(__name__)

REASON_NO_NETWORK = "refused: no-network mode"
REASON_NO_ADAPTER = "unavailable: no live adapter configured"


@dataclass
class CollectionResult:
    evidence: List[RawEvidence] = field(default_factory=list)
    degraded: List[DegradedSource] = field(default_factory=list)
    malformed: int = 0


def default_adapters(
    scope: Scope,
    *,
    detectors: Sequence[str],
    sources: Sequence[str],
    fixture: Optional[Path] = None,
) -> List[SourceAdapter]:
    """Adapters for a run; a fixture stands in for every collector during replay."""

    if fixture is not None:
        return [FixtureSource(fixture)]
    adapters: List[SourceAdapter] = []
    if "offline" in sources and "typosquat" in detectors:
        adapters.append(OfflineTyposquatSource())
    return adapters


class Collector:
    """Run source adapters concurrently under per-source limits."""

    def __init__(
        self,
        scope: Scope,
        adapters: Sequence[SourceAdapter],
        *,
        sources: Sequence[str] = (),
        no_network: bool = False,
        settings: Settings | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.scope = scope
        self.adapters = list(adapters)
        self.sources = tuple(sources)
        self.no_network = no_network
        self.settings = settings or get_settings()
        self.timeout = self.settings.collection.timeout_seconds
        self.max_workers = max(1, self.settings.collection.max_workers)
        self.observability = observability or get_observability(component="collection", settings=self.settings)
        self._limiters: Dict[str, RateLimiter] = {}

    def _build_limiters(self, adapters: Sequence[SourceAdapter]) -> None:
        for kind in sorted({adapter.kind for adapter in adapters}):
            if kind not in self._limiters:
                self._limiters[kind] = RateLimiter(self.scope.rate_limit_for(kind))

    def _run_adapter(self, adapter: SourceAdapter, window: RunWindow) -> SourceBatch:
        with self._limiters[adapter.kind]:
            return adapter.collect(self.scope, window)

    def _runnable(self, result: CollectionResult) -> List[SourceAdapter]:
        runnable = []
        for adapter in self.adapters:
            if self.no_network and not adapter.offline:
                result.degraded.append(DegradedSource(source=adapter.kind, reason=REASON_NO_NETWORK))
                continue
            runnable.append(adapter)

        covered = {adapter.kind for adapter in self.adapters}
        if "fixture" not in covered:
            for kind in self.sources:
                if kind in covered or kind in OFFLINE_SOURCE_KINDS:
                    continue
                reason = REASON_NO_NETWORK if self.no_network else REASON_NO_ADAPTER
                result.degraded.append(DegradedSource(source=kind, reason=reason))
        return runnable

    def collect(self, window: RunWindow) -> CollectionResult:
        """Gather evidence from every runnable adapter, waiting at most ``timeout`` seconds."""

        result = CollectionResult()
        runnable = self._runnable(result)
        if not runnable:
            return result
        # Limiters are shared per source kind and must exist before workers start.
        self._build_limiters(runnable)

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(runnable)))
        try:
            futures = {executor.submit(self._run_adapter, adapter, window): adapter for adapter in runnable}
            done, pending = wait(futures, timeout=self.timeout)
            for future in pending:
                adapter = futures[future]
                future.cancel()
                LOGGER.warning("Source %s timed out after %.1fs", adapter.kind, self.timeout)
                result.degraded.append(
                    DegradedSource(source=adapter.kind, reason=f"timeout after {self.timeout:g}s")
                )
            for future in sorted(done, key=lambda item: futures[item].kind):
                adapter = futures[future]
                try:
                    batch = future.result()
                except CollectionError as exc:
                    LOGGER.warning("Source %s degraded: %s", exc.source, exc.reason)
                    result.degraded.append(DegradedSource(source=exc.source, reason=exc.reason))
                    continue
                except Exception as exc:
                    LOGGER.warning("Source %s failed", adapter.kind, exc_info=True)
                    result.degraded.append(DegradedSource(source=adapter.kind, reason=f"error: {exc}"))
                    continue
                result.evidence.extend(batch.evidence)
                result.malformed += batch.malformed
                self.observability.emit_event(
                    "collection.source",
                    source=batch.source,
                    evidence=len(batch.evidence),
                    malformed=batch.malformed,
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for item in result.degraded:
            self.observability.increment("collection.degraded", tags={"source": item.source})
        return result


__all__ = ["CollectionResult", "Collector", "REASON_NO_ADAPTER", "REASON_NO_NETWORK", "default_adapters"]
