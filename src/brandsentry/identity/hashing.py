"""Deterministic identity derivation and artifact hashing.

Every identifier is SHA-256 over a canonical JSON encoding (sorted keys,
compact separators, UTF-8) whose first element is ``HASH_SCHEME``. Changing
the encoding or the prefix invalidates cross-run dedupe history, so any such
change must bump ``HASH_SCHEME``.
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from pydantic import BaseModel

from brandsentry.errors import HashingError

HASH_SCHEME = "v1"

_WHITESPACE_RE = re.compile(r"\s+")


def sha256_hex(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``data``."""

    return hashlib.sha256(data).hexdigest()


def normalize_whitespace(value: str) -> str:
    """Strip ``value`` and collapse internal whitespace runs to one space."""

    return _WHITESPACE_RE.sub(" ", value).strip()


def _canonical_value(value: Any) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise HashingError(f"non-finite float cannot be hashed: {value!r}")
        return value
    if isinstance(value, str):
        return normalize_whitespace(value)
    if isinstance(value, Enum):
        return _canonical_value(value.value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise HashingError(f"naive datetime cannot be hashed: {value.isoformat()}")
        return value.isoformat()
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, BaseModel):
        return _canonical_value(value.model_dump(mode="json"))
    if isinstance(value, Mapping):
        canonical: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise HashingError(f"mapping keys must be strings, got {type(key).__name__}")
            canonical[key] = _canonical_value(item)
        return canonical
    if isinstance(value, (set, frozenset)):
        items = [_canonical_value(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, ensure_ascii=False))
    if isinstance(value, (list, tuple)):
        return [_canonical_value(item) for item in value]
    raise HashingError(f"unsupported type for canonical hashing: {type(value).__name__}")


def canonical_json(value: Any) -> str:
    """Serialize ``value`` to its canonical JSON form.

    Strings are whitespace-normalized, sets are sorted, and mapping keys are
    emitted in sorted order so that semantically identical inputs always
    produce identical text.

    Raises:
        HashingError: If ``value`` contains a type with no canonical form.
    """

    try:
        return json.dumps(
            _canonical_value(value),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise HashingError(f"canonical serialization failed: {exc}") from exc


def digest(*parts: Any) -> str:
    """Hash ``parts`` as a versioned canonical JSON array."""

    return sha256_hex(canonical_json([HASH_SCHEME, *parts]).encode("utf-8"))


def _sorted_indicators(indicators: Iterable[str]) -> list[str]:
    ordered = []
    for indicator in indicators:
        if not isinstance(indicator, str):
            raise HashingError(f"indicator must be a string, got {type(indicator).__name__}")
        ordered.append(normalize_whitespace(indicator))
    return sorted(ordered)


def _type_value(signal_type: Any) -> str:
    return signal_type.value if isinstance(signal_type, Enum) else str(signal_type)


def derive_signal_id(signal_type: Any, subject: str, evidence_ref: str, indicators: Iterable[str]) -> str:
    """Return the stable signal id for the identity-bearing fields.

    Indicators are sorted first, so input order never changes the id.
    """

    return "sig_" + digest("signal", _type_value(signal_type), subject, evidence_ref, _sorted_indicators(indicators))


def derive_dedupe_key(signal_type: Any, subject: str, indicators: Iterable[str]) -> str:
    """Return the cross-run dedupe key (independent of the evidence reference)."""

    return "dk_" + digest("dedupe", _type_value(signal_type), subject, _sorted_indicators(indicators))


def derive_evidence_ref(source: str, detector: str, content: str, indicators: Sequence[str]) -> str:
    """Return a reference for evidence that arrived without one."""

    return "ev_" + digest("evidence", source, detector, content, _sorted_indicators(indicators))


def derive_finding_id(subject: str, signal_ids: Iterable[str]) -> str:
    """Return the finding id for a subject group and its contributing signals."""

    return "fnd_" + digest("finding", subject, sorted(signal_ids))


def hash_record(record: Any) -> str:
    """Hash a single record (model or mapping) in canonical form."""

    return sha256_hex(canonical_json(record).encode("utf-8"))


def scope_hash(scope: Any) -> str:
    """Hash a validated scope via its canonical payload."""

    payload = scope.hash_payload() if hasattr(scope, "hash_payload") else scope
    return digest("scope", payload)


def config_hash(config: Any) -> str:
    """Hash a run configuration via its canonical payload."""

    payload = config.hash_payload() if hasattr(config, "hash_payload") else config
    return digest("config", payload)


def run_id_for(manifest: BaseModel) -> str:
    """Return the run id derived from the finished manifest."""

    return "run_" + hash_record(manifest)


def hash_bytes(data: bytes) -> str:
    """Hash raw artifact bytes exactly as written."""

    return sha256_hex(data)


def hash_file(path: Path) -> str:
    """Hash the bytes of an artifact on disk."""

    return sha256_hex(Path(path).read_bytes())


__all__ = [
    "HASH_SCHEME",
    "canonical_json",
    "config_hash",
    "derive_dedupe_key",
    "derive_evidence_ref",
    "derive_finding_id",
    "derive_signal_id",
    "digest",
    "hash_bytes",
    "hash_file",
    "hash_record",
    "normalize_whitespace",
    "run_id_for",
    "scope_hash",
    "sha256_hex",
]
