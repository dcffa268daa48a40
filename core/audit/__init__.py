"""Core audit module - reconciliation run log and persistence."""

from core.audit.runs import (
    InMemoryRunLog,
    RunLogBackend,
    RunLogError,
    SQLiteRunLog,
    completed_run,
    failed_run,
)

__all__ = [
    "InMemoryRunLog",
    "RunLogBackend",
    "RunLogError",
    "SQLiteRunLog",
    "completed_run",
    "failed_run",
]
