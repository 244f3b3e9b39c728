"""Source adapter interface for the collection boundary."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, NamedTuple

from brandsentry.pipeline.manifest import RunWindow
from brandsentry.scope import Scope
from brandsentry.signals import RawEvidence


class SourceBatch(NamedTuple):
    """Evidence gathered by one adapter, plus records it could not parse."""

    source: str
    evidence: List[RawEvidence]
    malformed: int = 0


class SourceAdapter(ABC):
    """A collector for one source kind.

    Adapters run on collection worker threads and must not share mutable
    state with one another. ``offline`` adapters never touch the network.
    """

    kind: str = ""
    offline: bool = False

    @abstractmethod
    def collect(self, scope: Scope, window: RunWindow) -> SourceBatch:
        """Gather raw evidence for ``scope`` within ``window``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r})"


__all__ = ["SourceAdapter", "SourceBatch"]
