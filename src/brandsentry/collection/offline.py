"""Offline typosquat candidates generated from the scope's own domains."""

from __future__ import annotations

from brandsentry.collection.base import SourceAdapter, SourceBatch
from brandsentry.detectors.typosquat import permutations
from brandsentry.pipeline.manifest import RunWindow
from brandsentry.scope import Scope
from brandsentry.signals import RawEvidence


class OfflineTyposquatSource(SourceAdapter):
    """Permute each scope domain into lookalike candidates without any lookups.

    Candidates are stamped with the window start so that a pinned clock
    reproduces identical evidence.
    """

    kind = "offline"
    offline = True

    def collect(self, scope: Scope, window: RunWindow) -> SourceBatch:
        evidence = []
        for domain in scope.domains:
            for candidate in permutations(domain, scope.typosquat.locale):
                evidence.append(
                    RawEvidence(
                        source=self.kind,
                        detector="typosquat",
                        reference=f"offline:{candidate}",
                        retrieved_at=window.start,
                        subject=domain,
                        content=candidate,
                        indicators=[candidate],
                    )
                )
        return SourceBatch(source=self.kind, evidence=evidence)


__all__ = ["OfflineTyposquatSource"]
