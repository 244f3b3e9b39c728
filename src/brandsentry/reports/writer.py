"""Deterministic serialization of run artifacts.

JSONL records keep model field order (no key sorting), compact separators,
and UTF-8 without ASCII escaping; records are written in the order given,
which callers keep sorted. Identical inputs therefore produce identical bytes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Type, TypeVar

from pydantic import BaseModel

from brandsentry.identity import hash_bytes
from brandsentry.signals import ArtifactHash, Manifest, model_payload

ModelT = TypeVar("ModelT", bound=BaseModel)


def jsonl_bytes(records: Iterable[BaseModel]) -> bytes:
    """Serialize models one per line."""

    lines = [json.dumps(model_payload(record), ensure_ascii=False, separators=(",", ":")) for record in records]
    return "".join(f"{line}\n" for line in lines).encode("utf-8")


def manifest_bytes(manifest: Manifest) -> bytes:
    return (json.dumps(model_payload(manifest), ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def write_artifact(path: Path, data: bytes) -> ArtifactHash:
    """Write ``data`` to ``path`` and return its hash keyed by file name."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return ArtifactHash(artifact=path.name, sha256=hash_bytes(data))


def read_jsonl(path: Path, model: Type[ModelT]) -> List[ModelT]:
    """Load a JSONL artifact back into models."""

    with path.open("r", encoding="utf-8") as handle:
        return [model.model_validate_json(line) for line in handle if line.strip()]


def read_manifest(path: Path) -> Manifest:
    return Manifest.model_validate_json(path.read_text(encoding="utf-8"))


__all__ = ["jsonl_bytes", "manifest_bytes", "read_jsonl", "read_manifest", "write_artifact"]
