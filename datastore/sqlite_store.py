"""SQLite record store.

Creates and manages the five supply-chain tables read by the reconciliation
report:
- erp_procurement_orders: orders received from ERP systems
- warehouse_dispatch_schedule: order → batch dispatch links
- shipments: batch movements
- invoices: GST invoices per batch
- delivery_confirmations: driver proof of delivery per shipment

Every successful write publishes a ChangeEvent to subscribers of the table.
"""

import json
import sqlite3
import uuid
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from core.observability.logging import get_logger
from datastore.base import (
    ChangeType,
    DELIVERIES_TABLE,
    DISPATCH_TABLE,
    DuplicateRecordError,
    Filter,
    INVOICES_TABLE,
    ORDERS_TABLE,
    RecordStore,
    SHIPMENTS_TABLE,
    StoreError,
    UNIQUE_COLUMNS,
)


logger = get_logger(__name__)

JSON_COLUMNS = {"validation_errors"}


SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {ORDERS_TABLE} (
        id TEXT PRIMARY KEY,
        po_number TEXT NOT NULL UNIQUE,
        product_type TEXT,
        quantity_kg REAL,
        confirmed_quantity_kg REAL,
        delivery_date TEXT,
        validation_status TEXT DEFAULT 'pending',
        status TEXT,
        source_system TEXT,
        processing_unit_id TEXT,
        validation_errors TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_orders_created_at
    ON {ORDERS_TABLE}(created_at)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {DISPATCH_TABLE} (
        id TEXT PRIMARY KEY,
        erp_order_id TEXT NOT NULL,
        batch_id TEXT,
        dispatch_status TEXT,
        scheduled_dispatch_date TEXT,
        warehouse_id TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_dispatch_order
    ON {DISPATCH_TABLE}(erp_order_id)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {SHIPMENTS_TABLE} (
        id TEXT PRIMARY KEY,
        batch_id TEXT,
        status TEXT,
        departure_time TEXT,
        actual_arrival TEXT,
        eta TEXT,
        from_location TEXT,
        to_location TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_shipments_batch
    ON {SHIPMENTS_TABLE}(batch_id)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {INVOICES_TABLE} (
        id TEXT PRIMARY KEY,
        batch_id TEXT,
        amount REAL,
        gst_number TEXT,
        gst_amount REAL,
        invoice_number TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_invoices_batch
    ON {INVOICES_TABLE}(batch_id)
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {DELIVERIES_TABLE} (
        id TEXT PRIMARY KEY,
        shipment_id TEXT NOT NULL,
        confirmed_at TEXT,
        photo_url TEXT,
        signature_url TEXT,
        recipient_name TEXT,
        created_at TEXT
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS idx_deliveries_shipment
    ON {DELIVERIES_TABLE}(shipment_id)
    """,
)


def init_supply_chain_db(db_path: Path) -> None:
    """Create the supply-chain tables and indexes if they do not exist."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
        conn.commit()
    finally:
        conn.close()
    logger.info(f"Supply-chain tables initialized at {db_path}")


def _to_db_value(column: str, value: Any) -> Any:
    """Convert Python values to something sqlite3 can bind."""
    if value is None:
        return None
    if column in JSON_COLUMNS and not isinstance(value, str):
        return json.dumps(value, default=str)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return 1 if value else 0
    return value


def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    for column in JSON_COLUMNS:
        raw = data.get(column)
        if isinstance(raw, str):
            try:
                data[column] = json.loads(raw)
            except json.JSONDecodeError:
                pass  # keep text written by other tools
    return data


class SQLiteRecordStore(RecordStore):
    """Record store backed by a sqlite database file.

    A connection is opened per operation, so one instance can be shared
    between the event loop and worker threads.
    """

    def __init__(self, db_path: Path, initialize: bool = True):
        super().__init__()
        self.db_path = Path(db_path)
        if initialize:
            init_supply_chain_db(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # =========================================================================
    # Queries
    # =========================================================================

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

        query = f"SELECT * FROM {table} WHERE 1=1"
        params: List[Any] = []
        for f in filters:
            query += f" AND {f.column} {f.sql_operator} ?"
            params.append(_to_db_value(f.column, f.value))

        if order_by:
            direction = "DESC" if descending else "ASC"
            query += f" ORDER BY {order_by} {direction}, rowid ASC"
        else:
            query += " ORDER BY rowid ASC"

        try:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Query on {table} failed: {e}") from e

        return [_row_to_dict(row) for row in rows]

    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        self._check_table(table)
        try:
            conn = self._connect()
            try:
                row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (str(row_id),)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Lookup on {table} failed: {e}") from e
        return _row_to_dict(row) if row else None

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        columns = self._check_table(table)
        self._check_columns(table, row.keys())

        data = dict(row)
        data["id"] = str(data.get("id") or uuid.uuid4())
        if "created_at" in columns and not data.get("created_at"):
            data["created_at"] = datetime.utcnow().isoformat()

        names = list(data.keys())
        placeholders = ", ".join("?" for _ in names)
        values = [_to_db_value(name, data[name]) for name in names]

        try:
            conn = self._connect()
            try:
                conn.execute(
                    f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
                    values,
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.IntegrityError as e:
            for column in ("id",) + UNIQUE_COLUMNS.get(table, ()):
                if f"{table}.{column}" in str(e):
                    raise DuplicateRecordError(table, column, data.get(column)) from e
            raise StoreError(f"Insert into {table} failed: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Insert into {table} failed: {e}") from e

        self._notify(table, ChangeType.INSERT)
        return self.get(table, data["id"])

    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        columns = self._check_table(table)
        changes = {k: v for k, v in changes.items() if k != "id"}
        self._check_columns(table, changes.keys())
        if "updated_at" in columns:
            changes.setdefault("updated_at", datetime.utcnow().isoformat())
        if not changes:
            return self.get(table, row_id)

        assignments = ", ".join(f"{name} = ?" for name in changes)
        values = [_to_db_value(name, value) for name, value in changes.items()]
        values.append(str(row_id))

        try:
            conn = self._connect()
            try:
                cursor = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", values)
                conn.commit()
                updated = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.IntegrityError as e:
            for column in UNIQUE_COLUMNS.get(table, ()):
                if f"{table}.{column}" in str(e):
                    raise DuplicateRecordError(table, column, changes.get(column)) from e
            raise StoreError(f"Update of {table} failed: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Update of {table} failed: {e}") from e

        if not updated:
            return None
        self._notify(table, ChangeType.UPDATE)
        return self.get(table, row_id)

    def delete(self, table: str, row_id: str) -> bool:
        self._check_table(table)
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (str(row_id),))
                conn.commit()
                deleted = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StoreError(f"Delete from {table} failed: {e}") from e

        if not deleted:
            return False
        self._notify(table, ChangeType.DELETE)
        return True
