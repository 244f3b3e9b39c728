"""Configuration loader for brandsentry using Pydantic settings."""

from __future__ import annotations

import os
import tomllib
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "BRANDSENTRY_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "BRANDSENTRY_SETTINGS_FILE"


def _resolve_env(explicit_env: str | None = None) -> str:
    """Return the active environment name.

    Args:
        explicit_env: Environment value supplied directly by the caller.

    Returns:
        A stripped environment name, falling back to ``DEFAULT_ENV``.
    """

    env = explicit_env or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV
    return env.strip()


def _env_file_candidates(env: str) -> list[Path]:
    """List candidate ``.env`` files used during settings resolution."""

    return [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env}",
        PROJECT_ROOT / ".env.local",
    ]


def _resolve_config_path(raw_path: str | None) -> Path | None:
    """Return an absolute config path from user input."""

    if not raw_path:
        return None
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = (PROJECT_ROOT / candidate).resolve()
    return candidate


def _config_file_priority(include_missing: bool = False) -> tuple[Path, ...]:
    """Return config files in descending precedence order."""

    ordered: list[Path] = []
    env_override = _resolve_config_path(os.getenv(SETTINGS_FILE_ENV_VAR))
    if env_override:
        ordered.append(env_override)
    ordered.append(LOCAL_CONFIG_FILE)
    ordered.append(DEFAULT_CONFIG_FILE)
    if include_missing:
        return tuple(ordered)
    return tuple(path for path in ordered if path.exists())


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Pydantic settings source that loads values from a TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        try:
            with self.path.open("rb") as handle:
                self._data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:  # pragma: no cover - invalid files surface immediately
            raise ValueError(f"Invalid TOML syntax in {self.path}") from exc
        return self._data

    def __call__(self) -> dict[str, Any]:  # pragma: no cover - trivial wrapper
        return self._load()

    def get_field_value(self, field_name: str, field):  # pragma: no cover - passthrough helper
        data = self._load()
        return data.get(field_name), field_name in data


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUNTIME__LOG_LEVEL"),
    )
    fixed_time: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("FIXED_TIME", "RUNTIME__FIXED_TIME"),
    )

    @field_validator("fixed_time", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class StorageSettings(BaseSettings):
    """History store configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    sqlite_path: Path = Field(
        default=PROJECT_ROOT / "data" / "brandsentry.db",
        validation_alias=AliasChoices("SQLITE_PATH", "STORAGE__SQLITE_PATH"),
    )
    enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("STORAGE_ENABLED", "STORAGE__ENABLED"),
    )


class PipelineSettings(BaseSettings):
    """Run output and build identification."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    output_dir: Path = Field(
        default=PROJECT_ROOT / "out",
        validation_alias=AliasChoices("OUTPUT_DIR", "PIPELINE__OUTPUT_DIR"),
    )
    tool_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TOOL_VERSION", "PIPELINE__TOOL_VERSION"),
    )
    build_id_env_vars: list[str] = Field(
        default_factory=lambda: ["BRANDSENTRY_BUILD_ID", "GITHUB_SHA", "GIT_HASH"],
    )


class CollectionSettings(BaseSettings):
    """External collection boundary limits."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices("COLLECTION_TIMEOUT_SECONDS", "COLLECTION__TIMEOUT_SECONDS"),
    )
    max_workers: int = Field(
        default=4,
        validation_alias=AliasChoices("COLLECTION_MAX_WORKERS", "COLLECTION__MAX_WORKERS"),
    )


class AlertSettings(BaseSettings):
    """Alert dispatch wiring."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    webhook_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ALERT_WEBHOOK_URL", "ALERTS__WEBHOOK_URL"),
    )
    timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("ALERT_TIMEOUT_SECONDS", "ALERTS__TIMEOUT_SECONDS"),
    )


class ObservabilitySettings(BaseSettings):
    """Logging and metrics configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    structured_logging: bool = Field(
        default=True,
        validation_alias=AliasChoices("OBS_STRUCTURED_LOGGING", "OBSERVABILITY__STRUCTURED_LOGGING"),
    )
    statsd_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STATSD_HOST", "OBSERVABILITY__STATSD_HOST"),
    )
    statsd_port: int = Field(
        default=8125,
        validation_alias=AliasChoices("STATSD_PORT", "OBSERVABILITY__STATSD_PORT"),
    )
    statsd_prefix: str = Field(
        default="brandsentry",
        validation_alias=AliasChoices("STATSD_PREFIX", "OBSERVABILITY__STATSD_PREFIX"),
    )
    service_name: str = Field(
        default="brandsentry",
        validation_alias=AliasChoices("OBS_SERVICE_NAME", "OBSERVABILITY__SERVICE_NAME"),
    )


class Settings(BaseSettings):
    """Top-level configuration model with nested sections for each subsystem."""

    env: str = Field(
        default_factory=lambda: _resolve_env(),
        validation_alias=AliasChoices("ENV", "ENVIRONMENT", "RUNTIME__ENV"),
    )
    project_root: Path = Field(default=PROJECT_ROOT)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="BRANDSENTRY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Extend settings sources with TOML-based config files."""

        config_sources = [TomlConfigSettingsSource(settings_cls, path) for path in _config_file_priority()]
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            *config_sources,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths once the model is initialised."""

        if not self.storage.sqlite_path.is_absolute():
            resolved = (self.project_root / self.storage.sqlite_path).resolve()
            object.__setattr__(self, "storage", self.storage.model_copy(update={"sqlite_path": resolved}))
        if not self.pipeline.output_dir.is_absolute():
            resolved = (self.project_root / self.pipeline.output_dir).resolve()
            object.__setattr__(self, "pipeline", self.pipeline.model_copy(update={"output_dir": resolved}))
        return self

    @property
    def log_level(self) -> str:
        """str: Effective logging level for the running process."""

        return self.runtime.log_level

    @property
    def sqlite_path(self) -> Path:
        """Path: Filesystem path for the local SQLite history database."""

        return self.storage.sqlite_path

    def build_id(self) -> str:
        """Return the build identifier recorded in run manifests."""

        for name in self.pipeline.build_id_env_vars:
            value = os.getenv(name)
            if value and value.strip():
                return value.strip()
        return "unknown"


def _load_settings(env: str | None = None) -> Settings:
    """Load settings with optional environment override.

    Args:
        env: Environment name supplied programmatically.

    Returns:
        Fully parsed :class:`Settings` instance with env files applied.
    """

    resolved_env = _resolve_env(env)
    candidate_files = [path for path in _env_file_candidates(resolved_env) if path.exists()]
    config_files = _config_file_priority()
    return Settings(
        _env_file=[str(path) for path in candidate_files],
        _env_file_encoding="utf-8",
        env=resolved_env,
        env_files=tuple(candidate_files),
        config_files=config_files,
    )


@lru_cache(maxsize=1)
def get_settings(env: str | None = None) -> Settings:
    """Return cached settings for the requested environment."""

    return _load_settings(env)


def reload_settings(env: str | None = None) -> Settings:
    """Clear the cached settings and reload from disk."""

    get_settings.cache_clear()
    return get_settings(env)


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "PROJECT_ROOT",
    "ENV_VAR_NAME",
]
