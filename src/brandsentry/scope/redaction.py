"""Redaction of evidence text when raw storage is not authorized."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern, Tuple

from brandsentry.errors import ScopeError
from brandsentry.scope.models import Scope

REDACTED = "[REDACTED]"


@lru_cache(maxsize=64)
def compile_patterns(patterns: Tuple[str, ...]) -> Tuple[Pattern[str], ...]:
    """Compile redaction patterns, raising ``ScopeError`` on the first invalid one."""

    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise ScopeError(f"invalid redaction pattern {pattern!r}: {exc}") from exc
    return tuple(compiled)


class Redactor:
    """Mask spans matching the scope's redaction patterns.

    An inactive redactor (``store_raw`` enabled) returns text unchanged.
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        self._compiled = compile_patterns(self.patterns)

    @classmethod
    def for_scope(cls, scope: Scope) -> "Redactor":
        return cls(scope.privacy.effective_patterns)

    @property
    def active(self) -> bool:
        return bool(self._compiled)

    def redact(self, text: str) -> str:
        for pattern in self._compiled:
            text = pattern.sub(REDACTED, text)
        return text

    def redact_optional(self, text: Optional[str]) -> Optional[str]:
        return None if text is None else self.redact(text)

    def redact_all(self, values: Iterable[str]) -> List[str]:
        return [self.redact(value) for value in values]

    def exposes(self, text: str) -> bool:
        """Return ``True`` when ``text`` contains a span that would be masked."""

        return any(pattern.search(text) for pattern in self._compiled)


__all__ = ["REDACTED", "Redactor", "compile_patterns"]
