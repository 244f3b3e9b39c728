"""SQL-backed run history: runs, signals, findings, and cross-run dedupe keys."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Set

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from brandsentry.errors import PersistenceError
from brandsentry.settings import Settings
from brandsentry.signals import Finding, Signal, ensure_utc, model_payload
from brandsentry.store import sql as sql_schema
from brandsentry.store.base import RecordedRun, RunSummary
from brandsentry.store.sql import session_factory as default_session_factory
from brandsentry.store.trend import Observation, TrendReport, build_trend

LOGGER = logging.getLogger(__name__)


class SqlRunStore:
    """Persist run outputs and answer history queries through SQLAlchemy Core."""

    def __init__(self, *, session_factory: sessionmaker | None = None, settings: Settings | None = None) -> None:
        if session_factory is None:
            try:
                session_factory = default_session_factory(settings=settings)
            except (SQLAlchemyError, OSError) as exc:
                raise PersistenceError(f"history store unavailable: {exc}") from exc
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(f"history store operation failed: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def previous_dedupe_keys(self, before: datetime, *, exclude_run: str | None = None) -> Set[str]:
        """Return dedupe keys first seen by runs evaluated at or before ``before``.

        Keys whose first sighting belongs to ``exclude_run`` are omitted; replay
        passes the recorded run id so a run never counts as its own history.
        """

        table = sql_schema.dedupe_history
        query = sa.select(table.c.dedupe_key).where(table.c.first_seen_at <= ensure_utc(before))
        if exclude_run is not None:
            query = query.where(table.c.first_seen_run_id != exclude_run)
        with self._session_scope() as session:
            return {row.dedupe_key for row in session.execute(query)}

    def record_run(self, run: RecordedRun) -> None:
        """Insert the run, its signals and findings, and update dedupe history.

        Recording a run id that is already stored is a no-op: identical
        manifests produce identical run ids.
        """

        manifest = run.manifest
        evaluated_at = manifest.evaluated_at
        with self._session_scope() as session:
            known = session.execute(
                sa.select(sql_schema.runs.c.run_id).where(sql_schema.runs.c.run_id == run.run_id)
            ).first()
            if known is not None:
                LOGGER.info("Run %s already recorded; skipping history write", run.run_id)
                return
            session.execute(
                sa.insert(sql_schema.runs).values(
                    run_id=run.run_id,
                    evaluated_at=evaluated_at,
                    run_window_start=manifest.run_window_start,
                    run_window_end=manifest.run_window_end,
                    scope_hash=manifest.scope_hash,
                    config_hash=manifest.config_hash,
                    manifest_sha256=run.manifest_sha256,
                    demo_mode=manifest.demo_mode,
                    signals_total=manifest.stats.signals_total,
                    signals_new=manifest.stats.signals_new,
                    findings_total=manifest.stats.findings_total,
                    manifest=model_payload(manifest),
                )
            )
            if run.signals:
                session.execute(
                    sa.insert(sql_schema.signals),
                    [
                        {
                            "run_id": run.run_id,
                            "signal_id": signal.id,
                            "dedupe_key": signal.dedupe_key,
                            "signal_type": signal.signal_type.value,
                            "subject": signal.subject,
                            "severity": signal.severity.value,
                            "confidence": signal.confidence,
                            "observed_at": signal.timestamp,
                            "is_repeat": signal.is_repeat,
                            "payload": model_payload(signal),
                        }
                        for signal in run.signals
                    ],
                )
            if run.findings:
                session.execute(
                    sa.insert(sql_schema.findings),
                    [
                        {
                            "run_id": run.run_id,
                            "finding_id": finding.id,
                            "subject": finding.subject,
                            "disposition": finding.disposition.value,
                            "severity": finding.severity.value,
                            "confidence": finding.confidence,
                            "last_corroborated_at": finding.last_corroborated_at,
                            "payload": model_payload(finding),
                        }
                        for finding in run.findings
                    ],
                )
            self._touch_dedupe_keys(session, run.run_id, evaluated_at, run.signals)
        LOGGER.info("Recorded run run_id=%s signals=%d findings=%d", run.run_id, len(run.signals), len(run.findings))

    def _touch_dedupe_keys(self, session: Session, run_id: str, evaluated_at: datetime, signals: List[Signal]) -> None:
        table = sql_schema.dedupe_history
        keys = {signal.dedupe_key: signal for signal in signals}
        if not keys:
            return
        existing = {
            row.dedupe_key: row
            for row in session.execute(
                sa.select(table.c.dedupe_key, table.c.first_seen_at).where(table.c.dedupe_key.in_(sorted(keys)))
            )
        }
        for key in sorted(keys):
            signal = keys[key]
            if key not in existing:
                session.execute(
                    sa.insert(table).values(
                        dedupe_key=key,
                        signal_type=signal.signal_type.value,
                        subject=signal.subject,
                        first_seen_run_id=run_id,
                        first_seen_at=evaluated_at,
                        last_seen_at=evaluated_at,
                        seen_count=1,
                    )
                )
                continue
            values: Dict[str, object] = {"seen_count": table.c.seen_count + 1, "last_seen_at": evaluated_at}
            if evaluated_at < ensure_utc(existing[key].first_seen_at):
                values.update(first_seen_at=evaluated_at, first_seen_run_id=run_id)
            session.execute(sa.update(table).where(table.c.dedupe_key == key).values(**values))

    def runs_in_window(self, start: datetime, end: datetime) -> List[RunSummary]:
        """Return summaries of runs evaluated in ``[start, end)``, oldest first."""

        table = sql_schema.runs
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table)
                .where(table.c.evaluated_at >= ensure_utc(start), table.c.evaluated_at < ensure_utc(end))
                .order_by(table.c.evaluated_at, table.c.run_id)
            ).all()
        return [
            RunSummary(
                run_id=row.run_id,
                evaluated_at=ensure_utc(row.evaluated_at),
                scope_hash=row.scope_hash,
                manifest_sha256=row.manifest_sha256,
                demo_mode=bool(row.demo_mode),
                signals_total=row.signals_total,
                signals_new=row.signals_new,
                findings_total=row.findings_total,
                findings_by_disposition=dict(row.manifest.get("stats", {}).get("findings_by_disposition", {})),
            )
            for row in rows
        ]

    def _latest_run_id(self, session: Session) -> str | None:
        table = sql_schema.runs
        row = session.execute(
            sa.select(table.c.run_id).order_by(table.c.evaluated_at.desc(), table.c.run_id.desc()).limit(1)
        ).first()
        return row.run_id if row else None

    def latest_signals(self) -> List[Signal]:
        with self._session_scope() as session:
            run_id = self._latest_run_id(session)
            if run_id is None:
                return []
            rows = session.execute(
                sa.select(sql_schema.signals.c.payload)
                .where(sql_schema.signals.c.run_id == run_id)
                .order_by(sql_schema.signals.c.signal_id)
            )
            return [Signal.model_validate(row.payload) for row in rows]

    def latest_findings(self) -> List[Finding]:
        with self._session_scope() as session:
            run_id = self._latest_run_id(session)
            if run_id is None:
                return []
            rows = session.execute(
                sa.select(sql_schema.findings.c.payload)
                .where(sql_schema.findings.c.run_id == run_id)
                .order_by(sql_schema.findings.c.finding_id)
            )
            return [Finding.model_validate(row.payload) for row in rows]

    def purge_older_than(self, days: int, now: datetime) -> int:
        """Delete runs (with their signals and findings) evaluated more than ``days`` before ``now``.

        Dedupe history is kept: keys are derived identifiers, not evidence.
        """

        cutoff = ensure_utc(now) - timedelta(days=days)
        runs = sql_schema.runs
        with self._session_scope() as session:
            expired = [
                row.run_id for row in session.execute(sa.select(runs.c.run_id).where(runs.c.evaluated_at < cutoff))
            ]
            if expired:
                session.execute(sa.delete(sql_schema.signals).where(sql_schema.signals.c.run_id.in_(expired)))
                session.execute(sa.delete(sql_schema.findings).where(sql_schema.findings.c.run_id.in_(expired)))
                session.execute(sa.delete(runs).where(runs.c.run_id.in_(expired)))
        if expired:
            LOGGER.info("Purged %d run(s) older than %d day(s)", len(expired), days)
        return len(expired)

    def trend(self, window: str, now: datetime) -> TrendReport:
        """Window-over-window counts per signal type, subject, and dedupe key."""

        signals_table = sql_schema.signals
        runs = sql_schema.runs
        history = sql_schema.dedupe_history
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(
                    runs.c.evaluated_at,
                    signals_table.c.signal_type,
                    signals_table.c.subject,
                    signals_table.c.dedupe_key,
                ).join(runs, runs.c.run_id == signals_table.c.run_id)
            ).all()
            first_seen = {
                row.dedupe_key: ensure_utc(row.first_seen_at)
                for row in session.execute(sa.select(history.c.dedupe_key, history.c.first_seen_at))
            }
        observations = [
            Observation(ensure_utc(row.evaluated_at), row.signal_type, row.subject, row.dedupe_key) for row in rows
        ]
        return build_trend(observations, first_seen, now=now, window=window)


__all__ = ["SqlRunStore"]
