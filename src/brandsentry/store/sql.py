"""SQLAlchemy metadata and engine helpers for the run history tables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Engine
from sqlalchemy.engine import URL
from sqlalchemy.orm import sessionmaker

from brandsentry.settings import Settings, get_settings

DATABASE_URL_ENV_VAR = "BRANDSENTRY_DATABASE_URL"

JSON_TYPE = sa.JSON()
TIMESTAMP = sa.DateTime(timezone=True)
ID_TYPE = sa.String(length=80)

METADATA = sa.MetaData()

runs = sa.Table(
    "runs",
    METADATA,
    sa.Column("run_id", ID_TYPE, primary_key=True),
    sa.Column("evaluated_at", TIMESTAMP, nullable=False),
    sa.Column("run_window_start", TIMESTAMP, nullable=False),
    sa.Column("run_window_end", TIMESTAMP, nullable=False),
    sa.Column("scope_hash", sa.Text(), nullable=False),
    sa.Column("config_hash", sa.Text(), nullable=False),
    sa.Column("manifest_sha256", sa.Text(), nullable=False),
    sa.Column("demo_mode", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    sa.Column("signals_total", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("signals_new", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("findings_total", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("manifest", JSON_TYPE, nullable=False),
)
sa.Index("idx_runs_evaluated_at", runs.c.evaluated_at)

signals = sa.Table(
    "signals",
    METADATA,
    sa.Column("run_id", ID_TYPE, sa.ForeignKey("runs.run_id", ondelete="CASCADE"), nullable=False),
    sa.Column("signal_id", ID_TYPE, nullable=False),
    sa.Column("dedupe_key", ID_TYPE, nullable=False),
    sa.Column("signal_type", sa.Text(), nullable=False),
    sa.Column("subject", sa.Text(), nullable=False),
    sa.Column("severity", sa.Text(), nullable=False),
    sa.Column("confidence", sa.Integer(), nullable=False),
    sa.Column("observed_at", TIMESTAMP, nullable=False),
    sa.Column("is_repeat", sa.Boolean(), nullable=False, server_default=sa.text("0")),
    sa.Column("payload", JSON_TYPE, nullable=False),
    sa.PrimaryKeyConstraint("run_id", "signal_id", name="pk_signals"),
)
sa.Index("idx_signals_dedupe_key", signals.c.dedupe_key)

findings = sa.Table(
    "findings",
    METADATA,
    sa.Column("run_id", ID_TYPE, sa.ForeignKey("runs.run_id", ondelete="CASCADE"), nullable=False),
    sa.Column("finding_id", ID_TYPE, nullable=False),
    sa.Column("subject", sa.Text(), nullable=False),
    sa.Column("disposition", sa.Text(), nullable=False),
    sa.Column("severity", sa.Text(), nullable=False),
    sa.Column("confidence", sa.Integer(), nullable=False),
    sa.Column("last_corroborated_at", TIMESTAMP, nullable=False),
    sa.Column("payload", JSON_TYPE, nullable=False),
    sa.PrimaryKeyConstraint("run_id", "finding_id", name="pk_findings"),
)
sa.Index("idx_findings_disposition", findings.c.disposition)

dedupe_history = sa.Table(
    "dedupe_history",
    METADATA,
    sa.Column("dedupe_key", ID_TYPE, primary_key=True),
    sa.Column("signal_type", sa.Text(), nullable=False),
    sa.Column("subject", sa.Text(), nullable=False),
    sa.Column("first_seen_run_id", ID_TYPE, nullable=False),
    sa.Column("first_seen_at", TIMESTAMP, nullable=False),
    sa.Column("last_seen_at", TIMESTAMP, nullable=False),
    sa.Column("seen_count", sa.Integer(), nullable=False, server_default="1"),
)
sa.Index("idx_dedupe_history_first_seen_at", dedupe_history.c.first_seen_at)


def _resolve_database_url(settings: Settings | None = None) -> str:
    """Return the SQLAlchemy URL considering overrides and configured path."""

    url_override = os.getenv(DATABASE_URL_ENV_VAR)
    if url_override:
        return url_override

    resolved = settings or get_settings()
    sqlite_path = Path(resolved.storage.sqlite_path)
    sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    return URL.create("sqlite", database=sqlite_path.as_posix()).render_as_string(hide_password=False)


def build_engine(*, echo: bool = False, settings: Settings | None = None, url: str | None = None) -> Engine:
    """Instantiate a SQLAlchemy engine aligned with project settings."""

    resolved_url = url or _resolve_database_url(settings)
    connect_args: dict[str, Any] = {}
    if resolved_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return sa.create_engine(resolved_url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)


def session_factory(*, settings: Settings | None = None, engine: Engine | None = None) -> sessionmaker:
    """Return a configured sessionmaker bound to the active engine, creating tables if needed."""

    bound = engine or build_engine(settings=settings)
    METADATA.create_all(bound)
    return sessionmaker(bind=bound, autoflush=False, autocommit=False, future=True)


__all__ = [
    "METADATA",
    "build_engine",
    "dedupe_history",
    "findings",
    "runs",
    "session_factory",
    "signals",
]
