"""Replay source: raw evidence read from a JSONL fixture file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from brandsentry.collection.base import SourceAdapter, SourceBatch
from brandsentry.errors import CollectionError
from brandsentry.pipeline.manifest import RunWindow
from brandsentry.scope import Scope
from brandsentry.signals import RawEvidence

LOGGER = logging.getLogger(__name__)


class FixtureSource(SourceAdapter):
    """Yield every record of a line-delimited fixture, one RawEvidence per line.

    Blank lines are ignored. Lines that are not valid JSON objects or do not
    describe a RawEvidence are counted as malformed and skipped.
    """

    kind = "fixture"
    offline = True

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def collect(self, scope: Scope, window: RunWindow) -> SourceBatch:
        try:
            handle = self.path.open("r", encoding="utf-8")
        except OSError as exc:
            raise CollectionError(self.kind, f"cannot read fixture {self.path}: {exc.strerror or exc}") from exc

        evidence = []
        malformed = 0
        with handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    evidence.append(RawEvidence.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as exc:
                    malformed += 1
                    LOGGER.warning("Skipping malformed fixture line %s:%d: %s", self.path, line_number, exc)
        LOGGER.info("Loaded %d record(s) from fixture %s", len(evidence), self.path)
        return SourceBatch(source=self.kind, evidence=evidence, malformed=malformed)


__all__ = ["FixtureSource"]
