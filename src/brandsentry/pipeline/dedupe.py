"""Within-run identity collapse and cross-run repeat classification."""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, NamedTuple

from brandsentry.signals import Signal


class DedupeResult(NamedTuple):
    new: List[Signal]
    repeats: List[Signal]

    @property
    def all(self) -> List[Signal]:
        """Every retained signal in deterministic order."""

        return sorted([*self.new, *self.repeats], key=Signal.sort_key)


def collapse(signals: Iterable[Signal]) -> List[Signal]:
    """Keep one signal per id, in ``(id, timestamp)`` order; the earliest observation wins."""

    retained: dict[str, Signal] = {}
    for signal in sorted(signals, key=Signal.sort_key):
        retained.setdefault(signal.id, signal)
    return list(retained.values())


def dedupe(signals: Iterable[Signal], seen_keys: AbstractSet[str]) -> DedupeResult:
    """Split ``signals`` into new and repeat observations.

    A signal whose dedupe key appears in ``seen_keys`` (history from prior
    runs) is a repeat: it is kept, tagged ``is_repeat``, and excluded from
    novelty counts. Identical ids within the run collapse to one signal.
    """

    new: List[Signal] = []
    repeats: List[Signal] = []
    for signal in collapse(signals):
        if signal.dedupe_key in seen_keys:
            repeats.append(signal.model_copy(update={"is_repeat": True}))
        else:
            new.append(signal.model_copy(update={"is_repeat": False}) if signal.is_repeat else signal)
    return DedupeResult(new=new, repeats=repeats)


__all__ = ["DedupeResult", "collapse", "dedupe"]
