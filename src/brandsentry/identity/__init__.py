"""Stable identity derivation and canonical hashing."""

from .hashing import (
    HASH_SCHEME,
    canonical_json,
    config_hash,
    derive_dedupe_key,
    derive_evidence_ref,
    derive_finding_id,
    derive_signal_id,
    hash_bytes,
    hash_file,
    hash_record,
    run_id_for,
    scope_hash,
    sha256_hex,
)

__all__ = [
    "HASH_SCHEME",
    "canonical_json",
    "config_hash",
    "derive_dedupe_key",
    "derive_evidence_ref",
    "derive_finding_id",
    "derive_signal_id",
    "hash_bytes",
    "hash_file",
    "hash_record",
    "run_id_for",
    "scope_hash",
    "sha256_hex",
]
