"""Reconciliation run log.

Append-only audit trail of reconciliation passes: when each ran, what
triggered it, a hash of the input snapshot and the resulting counts.
Supports multiple persistence backends.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from models.refs import ReconciliationReport, ReconciliationRun, RunStatus


class RunLogError(Exception):
    """The run log could not be written or read."""


def completed_run(
    report: ReconciliationReport,
    started_at: datetime,
    trigger: str,
) -> ReconciliationRun:
    """Build the log entry for a pass that produced a report."""
    stats = report.stats
    return ReconciliationRun(
        run_id=report.run_id,
        started_at=started_at,
        finished_at=report.generated_at,
        trigger=trigger,
        status=RunStatus.COMPLETED,
        input_snapshot_hash=report.snapshot_hash,
        record_count=stats.total,
        matched=stats.matched,
        partial=stats.partial,
        missing_data=stats.missing_data,
        gst_compliant_count=stats.gst_compliant_count,
        audit_ready_count=stats.audit_ready_count,
    )


def failed_run(run_id: str, started_at: datetime, trigger: str, error: str) -> ReconciliationRun:
    """Build the log entry for a pass that aborted."""
    return ReconciliationRun(
        run_id=run_id,
        started_at=started_at,
        finished_at=datetime.utcnow(),
        trigger=trigger,
        status=RunStatus.FAILED,
        error=error,
    )


class RunLogBackend(ABC):
    """Abstract base class for run log backends."""

    @abstractmethod
    def append(self, run: ReconciliationRun) -> None:
        """Persist a run. Existing entries are never modified."""
        pass

    @abstractmethod
    def list_runs(self, limit: int = 50, trigger: Optional[str] = None) -> List[ReconciliationRun]:
        """Most recent runs first."""
        pass

    @abstractmethod
    def get_run(self, run_id: str) -> Optional[ReconciliationRun]:
        pass


class SQLiteRunLog(RunLogBackend):
    """Run log stored in the reconciliation_runs table."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_table()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_table(self) -> None:
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reconciliation_runs (
                    run_id TEXT PRIMARY KEY,
                    started_at TEXT NOT NULL,
                    finished_at TEXT NOT NULL,
                    trigger TEXT NOT NULL,
                    status TEXT NOT NULL,
                    input_snapshot_hash TEXT,
                    record_count INTEGER DEFAULT 0,
                    matched INTEGER DEFAULT 0,
                    partial INTEGER DEFAULT 0,
                    missing_data INTEGER DEFAULT 0,
                    gst_compliant_count INTEGER DEFAULT 0,
                    audit_ready_count INTEGER DEFAULT 0,
                    error TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_finished_at
                ON reconciliation_runs(finished_at)
            """)
            conn.commit()
        finally:
            conn.close()

    def append(self, run: ReconciliationRun) -> None:
        data = run.model_dump(mode="json")
        columns = list(data.keys())
        try:
            conn = self._connect()
            try:
                conn.execute(
                    f"INSERT INTO reconciliation_runs ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    [data[c] for c in columns],
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.IntegrityError as e:
            raise RunLogError(f"Run {run.run_id} is already logged") from e
        except sqlite3.Error as e:
            raise RunLogError(f"Failed to append run {run.run_id}: {e}") from e

    def list_runs(self, limit: int = 50, trigger: Optional[str] = None) -> List[ReconciliationRun]:
        query = "SELECT * FROM reconciliation_runs"
        params: list = []
        if trigger:
            query += " WHERE trigger = ?"
            params.append(trigger)
        query += " ORDER BY finished_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        try:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RunLogError(f"Failed to list runs: {e}") from e
        return [ReconciliationRun.model_validate(dict(row)) for row in rows]

    def get_run(self, run_id: str) -> Optional[ReconciliationRun]:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT * FROM reconciliation_runs WHERE run_id = ?", (run_id,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RunLogError(f"Failed to read run {run_id}: {e}") from e
        return ReconciliationRun.model_validate(dict(row)) if row else None


class InMemoryRunLog(RunLogBackend):
    """In-memory run log for testing."""

    def __init__(self):
        self._runs: List[ReconciliationRun] = []
        self._lock = threading.Lock()

    def append(self, run: ReconciliationRun) -> None:
        with self._lock:
            if any(r.run_id == run.run_id for r in self._runs):
                raise RunLogError(f"Run {run.run_id} is already logged")
            self._runs.append(run)

    def list_runs(self, limit: int = 50, trigger: Optional[str] = None) -> List[ReconciliationRun]:
        with self._lock:
            runs = [r for r in reversed(self._runs) if not trigger or r.trigger == trigger]
        return runs[:limit]

    def get_run(self, run_id: str) -> Optional[ReconciliationRun]:
        with self._lock:
            return next((r for r in self._runs if r.run_id == run_id), None)

    def clear(self) -> None:
        """Clear all runs (for testing)."""
        with self._lock:
            self._runs.clear()
