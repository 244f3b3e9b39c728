"""Shared fixtures for brandsentry unit tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from brandsentry.observability import reset_observability_cache
from brandsentry.scope import validate
from brandsentry.settings import Settings
from brandsentry.signals import RawEvidence

OBSERVED = datetime(2024, 4, 30, 12, 0, tzinfo=timezone.utc)


def example_scope_data() -> dict:
    return {
        "brand_terms": ["Example"],
        "domains": ["Example.com"],
        "official_handles": ["@example"],
        "allowed_sources": ["ct", "dns", "fixture", "offline", "social", "feeds"],
        "allowed_detectors": ["certificate", "typosquat", "mentions", "impersonation"],
        "negative_keywords": ["careers"],
        "typosquat": {"distance_weight": 0},
    }


@pytest.fixture
def scope_data() -> dict:
    return example_scope_data()


@pytest.fixture
def scope(scope_data):
    return validate(scope_data)


@pytest.fixture
def make_raw():
    """Factory for raw evidence with sensible defaults."""

    def _make(**overrides) -> RawEvidence:
        fields = {
            "source": "dns",
            "detector": "typosquat",
            "reference": "dns:examp1e.com",
            "retrieved_at": OBSERVED,
            "subject": "example.com",
            "content": "examp1e.com registered",
            "indicators": ["examp1e.com"],
        }
        fields.update(overrides)
        return RawEvidence(**fields)

    return _make


@pytest.fixture
def example_evidence(make_raw):
    """Typosquat + certificate + landing page, plus one careers post."""

    return [
        make_raw(indicators=["examp1e.com", "landing_similarity=0.91"]),
        make_raw(
            source="ct",
            detector="certificate",
            reference="ct:crt-000001",
            content="certificate issued for examp1e.com",
            indicators=["examp1e.com", "ct_cert"],
        ),
        make_raw(
            source="social",
            detector="mentions",
            reference="social:post-42",
            content="We're hiring! careers at example.com",
            indicators=["example.com"],
        ),
    ]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        storage={"sqlite_path": tmp_path / "history.db"},
        pipeline={"output_dir": tmp_path / "out"},
        observability={"structured_logging": True, "statsd_host": None},
        collection={"timeout_seconds": 5.0, "max_workers": 2},
    )


@pytest.fixture(autouse=True)
def _isolate_observability():
    reset_observability_cache()
    yield
    reset_observability_cache()
