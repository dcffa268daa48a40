"""Reconciliation of ERP procurement orders against their downstream records.

Pipeline: fetch_snapshot -> build_index -> reconcile_snapshot -> summarize.
ReconciliationMonitor keeps the result current as the store changes.
"""

from reconciliation.aggregate import summarize
from reconciliation.engine import reconcile_order, reconcile_snapshot, run_reconciliation
from reconciliation.fetch import FetchError, ReconciliationSnapshot, fetch_snapshot
from reconciliation.index import ReconciliationIndex, build_index
from reconciliation.monitor import ReconciliationMonitor
from reconciliation.rules import (
    FlatRateLookup,
    RateLookup,
    ReconciliationPolicy,
    ShipmentSelection,
)

__all__ = [
    "summarize",
    "reconcile_order",
    "reconcile_snapshot",
    "run_reconciliation",
    "FetchError",
    "ReconciliationSnapshot",
    "fetch_snapshot",
    "ReconciliationIndex",
    "build_index",
    "ReconciliationMonitor",
    "FlatRateLookup",
    "RateLookup",
    "ReconciliationPolicy",
    "ShipmentSelection",
]
