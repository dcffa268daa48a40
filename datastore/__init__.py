"""
Record store for the five supply-chain collections.

Provides:
- RecordStore interface with filters and change subscriptions
- SQLiteRecordStore for the running service
- InMemoryRecordStore for tests and demos
"""

from datastore.base import (
    ChangeEvent,
    ChangeType,
    DELIVERIES_TABLE,
    DISPATCH_TABLE,
    DuplicateRecordError,
    Filter,
    INVOICES_TABLE,
    ORDERS_TABLE,
    RECONCILIATION_TABLES,
    RecordStore,
    SHIPMENTS_TABLE,
    StoreError,
    Subscription,
    UnknownTableError,
    eq,
)
from datastore.memory import InMemoryRecordStore
from datastore.sqlite_store import SQLiteRecordStore, init_supply_chain_db

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "DELIVERIES_TABLE",
    "DISPATCH_TABLE",
    "DuplicateRecordError",
    "Filter",
    "INVOICES_TABLE",
    "ORDERS_TABLE",
    "RECONCILIATION_TABLES",
    "RecordStore",
    "SHIPMENTS_TABLE",
    "StoreError",
    "Subscription",
    "UnknownTableError",
    "eq",
    "InMemoryRecordStore",
    "SQLiteRecordStore",
    "init_supply_chain_db",
]
