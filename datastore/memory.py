"""In-memory record store for tests and local demos."""

import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from datastore.base import (
    ChangeType,
    DuplicateRecordError,
    Filter,
    RECONCILIATION_TABLES,
    RecordStore,
    StoreError,
    UNIQUE_COLUMNS,
)


class InMemoryRecordStore(RecordStore):
    """Record store that keeps rows in per-table lists.

    Rows are kept in insertion order. Set ``fail_on`` to a set of table
    names to make selects on those tables raise StoreError.
    """

    def __init__(self, fail_on: Optional[Set[str]] = None):
        super().__init__()
        self._tables: Dict[str, List[Dict[str, Any]]] = {t: [] for t in RECONCILIATION_TABLES}
        self._lock = threading.RLock()
        self.fail_on: Set[str] = set(fail_on or ())
        self.select_calls = 0

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        self._check_table(table)
        return self._tables[table]

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        self._check_columns(table, [f.column for f in filters])
        if order_by:
            self._check_columns(table, [order_by])
        if table in self.fail_on:
            raise StoreError(f"Query on {table} failed: simulated outage")

        with self._lock:
            self.select_calls += 1
            rows = [copy.deepcopy(r) for r in self._rows(table) if all(f.matches(r) for f in filters)]

        if order_by:
            # NULLs first ascending, last descending (sqlite ordering)
            rows.sort(
                key=lambda r: (r.get(order_by) is not None, r.get(order_by)),
                reverse=descending,
            )
        return rows

    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for row in self._rows(table):
                if row.get("id") == str(row_id):
                    return copy.deepcopy(row)
        return None

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        columns = self._check_table(table)
        self._check_columns(table, row.keys())

        data = {column: None for column in columns}
        data.update(copy.deepcopy(row))
        data["id"] = str(data.get("id") or uuid.uuid4())
        if "created_at" in columns and not data.get("created_at"):
            data["created_at"] = datetime.utcnow().isoformat()

        with self._lock:
            rows = self._rows(table)
            if any(r["id"] == data["id"] for r in rows):
                raise DuplicateRecordError(table, "id", data["id"])
            for column in UNIQUE_COLUMNS.get(table, ()):
                value = data.get(column)
                if value is not None and any(r.get(column) == value for r in rows):
                    raise DuplicateRecordError(table, column, value)
            rows.append(data)
            stored = copy.deepcopy(data)

        self._notify(table, ChangeType.INSERT)
        return stored

    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        columns = self._check_table(table)
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._check_columns(table, changes.keys())
        if "updated_at" in columns:
            changes.setdefault("updated_at", datetime.utcnow().isoformat())

        with self._lock:
            rows = self._rows(table)
            target = next((r for r in rows if r["id"] == str(row_id)), None)
            if target is None:
                return None
            for column in UNIQUE_COLUMNS.get(table, ()):
                value = changes.get(column)
                if value is not None and any(
                    r is not target and r.get(column) == value for r in rows
                ):
                    raise DuplicateRecordError(table, column, value)
            target.update(copy.deepcopy(changes))
            stored = copy.deepcopy(target)

        self._notify(table, ChangeType.UPDATE)
        return stored

    def delete(self, table: str, row_id: str) -> bool:
        with self._lock:
            rows = self._rows(table)
            remaining = [r for r in rows if r["id"] != str(row_id)]
            if len(remaining) == len(rows):
                return False
            self._tables[table] = remaining

        self._notify(table, ChangeType.DELETE)
        return True
