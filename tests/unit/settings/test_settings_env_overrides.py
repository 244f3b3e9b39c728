"""Unit tests covering environment variable overrides for settings."""

from __future__ import annotations

import textwrap
from datetime import datetime, timezone

import pytest

from brandsentry.settings.config import PROJECT_ROOT, reload_settings


@pytest.fixture(autouse=True)
def _restore_settings_cache():
    yield
    reload_settings()


def _clear_env(monkeypatch: object, *names: str) -> None:
    """Remove env vars for every alias and prefixed variant."""

    for name in names:
        monkeypatch.delenv(name, raising=False)
        if name.startswith("BRANDSENTRY_"):
            monkeypatch.delenv(name.removeprefix("BRANDSENTRY_"), raising=False)
        else:
            monkeypatch.delenv(f"BRANDSENTRY_{name}", raising=False)


def test_storage_env_overrides(monkeypatch: object, tmp_path) -> None:
    """History location and toggle follow environment overrides."""

    _clear_env(monkeypatch, "BRANDSENTRY_STORAGE__SQLITE_PATH", "BRANDSENTRY_STORAGE__ENABLED", "BRANDSENTRY_SETTINGS_FILE")

    default_settings = reload_settings(env="dev")
    assert default_settings.storage.sqlite_path == (PROJECT_ROOT / "data" / "brandsentry.db").resolve()
    assert default_settings.storage.enabled is True

    monkeypatch.setenv("BRANDSENTRY_STORAGE__SQLITE_PATH", str(tmp_path / "override.db"))
    monkeypatch.setenv("BRANDSENTRY_STORAGE__ENABLED", "false")
    overridden = reload_settings(env="dev")
    assert overridden.sqlite_path == tmp_path / "override.db"
    assert overridden.storage.enabled is False


def test_runtime_fixed_time_is_utc(monkeypatch: object) -> None:
    """A pinned clock from the environment is normalized to UTC."""

    _clear_env(monkeypatch, "BRANDSENTRY_RUNTIME__FIXED_TIME", "BRANDSENTRY_SETTINGS_FILE")
    assert reload_settings(env="dev").runtime.fixed_time is None

    monkeypatch.setenv("BRANDSENTRY_RUNTIME__FIXED_TIME", "2024-05-01T02:00:00+02:00")
    pinned = reload_settings(env="dev").runtime.fixed_time
    assert pinned == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert pinned.tzinfo == timezone.utc


def test_collection_and_alert_env_overrides(monkeypatch: object) -> None:
    _clear_env(
        monkeypatch,
        "BRANDSENTRY_COLLECTION__TIMEOUT_SECONDS",
        "BRANDSENTRY_COLLECTION__MAX_WORKERS",
        "BRANDSENTRY_ALERTS__WEBHOOK_URL",
        "BRANDSENTRY_SETTINGS_FILE",
    )

    default_settings = reload_settings(env="dev")
    assert default_settings.collection.timeout_seconds == 30.0
    assert default_settings.collection.max_workers == 4
    assert default_settings.alerts.webhook_url is None

    monkeypatch.setenv("BRANDSENTRY_COLLECTION__TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("BRANDSENTRY_COLLECTION__MAX_WORKERS", "8")
    monkeypatch.setenv("BRANDSENTRY_ALERTS__WEBHOOK_URL", "https://hooks.example.test/brandsentry")
    overridden = reload_settings(env="dev")
    assert overridden.collection.timeout_seconds == 2.5
    assert overridden.collection.max_workers == 8
    assert overridden.alerts.webhook_url == "https://hooks.example.test/brandsentry"


def test_settings_file_override(tmp_path, monkeypatch: object) -> None:
    """Ensure TOML config files populate settings without manual env vars."""

    _clear_env(monkeypatch, "BRANDSENTRY_PIPELINE__TOOL_VERSION", "BRANDSENTRY_COLLECTION__MAX_WORKERS")

    settings_file = tmp_path / "settings.local.toml"
    settings_file.write_text(
        textwrap.dedent(
            """
            [pipeline]
            output_dir = "artifacts"
            tool_version = "9.9.9"

            [collection]
            max_workers = 2
            """
        ).strip(),
        encoding="utf-8",
    )

    monkeypatch.setenv("BRANDSENTRY_SETTINGS_FILE", str(settings_file))
    settings_from_file = reload_settings()
    assert settings_from_file.pipeline.tool_version == "9.9.9"
    assert settings_from_file.pipeline.output_dir == (PROJECT_ROOT / "artifacts").resolve()
    assert settings_from_file.collection.max_workers == 2
    assert settings_file in settings_from_file.config_files

    monkeypatch.setenv("BRANDSENTRY_COLLECTION__MAX_WORKERS", "6")
    assert reload_settings().collection.max_workers == 6


def test_local_config_overrides_default(tmp_path, monkeypatch: object) -> None:
    """Local config files take precedence over the default file."""

    _clear_env(monkeypatch, "BRANDSENTRY_SETTINGS_FILE", "BRANDSENTRY_RUNTIME__LOG_LEVEL")

    local_file = tmp_path / "settings.local.toml"
    local_file.write_text('[runtime]\nlog_level = "DEBUG"\n', encoding="utf-8")
    default_file = tmp_path / "settings.default.toml"
    default_file.write_text('[runtime]\nlog_level = "WARNING"\n', encoding="utf-8")

    monkeypatch.setattr("brandsentry.settings.config.LOCAL_CONFIG_FILE", local_file)
    monkeypatch.setattr("brandsentry.settings.config.DEFAULT_CONFIG_FILE", default_file)

    settings_from_local = reload_settings(env="dev")
    assert settings_from_local.log_level == "DEBUG"
    assert local_file in settings_from_local.config_files
    assert default_file in settings_from_local.config_files


def test_build_id_reads_first_configured_variable(monkeypatch: object) -> None:
    _clear_env(monkeypatch, "BRANDSENTRY_BUILD_ID", "GITHUB_SHA", "GIT_HASH", "BRANDSENTRY_SETTINGS_FILE")
    settings = reload_settings(env="dev")
    assert settings.build_id() == "unknown"

    monkeypatch.setenv("GITHUB_SHA", "abc123")
    assert settings.build_id() == "abc123"
    monkeypatch.setenv("BRANDSENTRY_BUILD_ID", " build-7 ")
    assert settings.build_id() == "build-7"


def test_observability_statsd_env_overrides(monkeypatch: object) -> None:
    """Verify StatsD-related observability settings honor env overrides."""

    _clear_env(
        monkeypatch,
        "BRANDSENTRY_OBSERVABILITY__STATSD_HOST",
        "BRANDSENTRY_OBSERVABILITY__STATSD_PORT",
        "BRANDSENTRY_OBSERVABILITY__STATSD_PREFIX",
        "BRANDSENTRY_SETTINGS_FILE",
    )

    default_settings = reload_settings(env="dev")
    assert default_settings.observability.statsd_host is None
    assert default_settings.observability.statsd_port == 8125
    assert default_settings.observability.statsd_prefix == "brandsentry"

    monkeypatch.setenv("BRANDSENTRY_OBSERVABILITY__STATSD_HOST", "127.0.0.1")
    monkeypatch.setenv("BRANDSENTRY_OBSERVABILITY__STATSD_PORT", "18125")
    monkeypatch.setenv("BRANDSENTRY_OBSERVABILITY__STATSD_PREFIX", "proto")

    overridden = reload_settings(env="dev")
    assert overridden.observability.statsd_host == "127.0.0.1"
    assert overridden.observability.statsd_port == 18125
    assert overridden.observability.statsd_prefix == "proto"
