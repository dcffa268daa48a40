"""Record store interface.

The reconciliation report treats persistence as an opaque relational store:
collections are read by table name with optional filters and ordering, and
writers publish change events that carry no payload guarantees beyond
"something changed in this table".

Backends:
- SQLiteRecordStore (datastore.sqlite_store) for the running service
- InMemoryRecordStore (datastore.memory) for tests and demos
"""

import operator
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from core.observability.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Tables
# =============================================================================

ORDERS_TABLE = "erp_procurement_orders"
DISPATCH_TABLE = "warehouse_dispatch_schedule"
SHIPMENTS_TABLE = "shipments"
INVOICES_TABLE = "invoices"
DELIVERIES_TABLE = "delivery_confirmations"

RECONCILIATION_TABLES = (
    ORDERS_TABLE,
    DISPATCH_TABLE,
    SHIPMENTS_TABLE,
    INVOICES_TABLE,
    DELIVERIES_TABLE,
)

TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    ORDERS_TABLE: (
        "id", "po_number", "product_type", "quantity_kg", "confirmed_quantity_kg",
        "delivery_date", "validation_status", "status", "source_system",
        "processing_unit_id", "validation_errors", "created_at", "updated_at",
    ),
    DISPATCH_TABLE: (
        "id", "erp_order_id", "batch_id", "dispatch_status", "scheduled_dispatch_date",
        "warehouse_id", "created_at", "updated_at",
    ),
    SHIPMENTS_TABLE: (
        "id", "batch_id", "status", "departure_time", "actual_arrival", "eta",
        "from_location", "to_location", "created_at", "updated_at",
    ),
    INVOICES_TABLE: (
        "id", "batch_id", "amount", "gst_number", "gst_amount", "invoice_number",
        "created_at", "updated_at",
    ),
    DELIVERIES_TABLE: (
        "id", "shipment_id", "confirmed_at", "photo_url", "signature_url",
        "recipient_name", "created_at",
    ),
}

UNIQUE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    ORDERS_TABLE: ("po_number",),
}


# =============================================================================
# Errors
# =============================================================================

class StoreError(Exception):
    """A query or write against the record store failed."""


class UnknownTableError(StoreError):
    """The table name is not part of the store schema."""


class DuplicateRecordError(StoreError):
    """A write violated a unique column."""

    def __init__(self, table: str, column: str, value: Any):
        self.table = table
        self.column = column
        self.value = value
        super().__init__(f"Duplicate {column}={value!r} in {table}")


# =============================================================================
# Filters
# =============================================================================

_FILTER_OPS: Dict[str, Tuple[str, Callable[[Any, Any], bool]]] = {
    "eq": ("=", operator.eq),
    "neq": ("!=", operator.ne),
    "gt": (">", operator.gt),
    "gte": (">=", operator.ge),
    "lt": ("<", operator.lt),
    "lte": ("<=", operator.le),
}


@dataclass(frozen=True)
class Filter:
    """Equality or range predicate on one column."""
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _FILTER_OPS:
            raise ValueError(f"Unsupported filter op {self.op!r}; expected one of {sorted(_FILTER_OPS)}")

    @property
    def sql_operator(self) -> str:
        return _FILTER_OPS[self.op][0]

    def matches(self, row: Dict[str, Any]) -> bool:
        """Evaluate against a row; NULLs never match, as in SQL."""
        actual = row.get(self.column)
        if actual is None or self.value is None:
            return False
        try:
            return _FILTER_OPS[self.op][1](actual, self.value)
        except TypeError:
            return False


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


# =============================================================================
# Change Notifications
# =============================================================================

class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """Something changed in ``table``."""
    table: str
    change_type: ChangeType


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by RecordStore.subscribe."""

    def __init__(self, store: "RecordStore", table: str, callback: ChangeCallback):
        self._store = store
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._store._remove_subscription(self)
            self.active = False


# =============================================================================
# Store Interface
# =============================================================================

class RecordStore(ABC):
    """Abstract base class for record store backends.

    Subclasses implement the query and write primitives; this class owns
    table validation and the subscriber registry. Writers must call
    ``_notify`` after a successful write.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._subscriptions_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Queries and writes
    # -------------------------------------------------------------------------

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Read rows. Without ``order_by``, rows come back in insertion order."""

    @abstractmethod
    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        """Read one row by id."""

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored (with generated id)."""

    @abstractmethod
    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a row; returns the new row, or None if it does not exist."""

    @abstractmethod
    def delete(self, table: str, row_id: str) -> bool:
        """Delete a row; returns True if it existed."""

    def close(self) -> None:
        """Release backend resources."""

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        """Call ``callback`` after every write to ``table``."""
        self._check_table(table)
        subscription = Subscription(self, table, callback)
        with self._subscriptions_lock:
            self._subscriptions.setdefault(table, []).append(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            subscribers = self._subscriptions.get(subscription.table, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def _notify(self, table: str, change_type: ChangeType) -> None:
        with self._subscriptions_lock:
            subscribers = list(self._subscriptions.get(table, []))

        event = ChangeEvent(table=table, change_type=change_type)
        for subscription in subscribers:
            try:
                subscription.callback(event)
            except Exception:
                # A failing subscriber must not fail the write that already committed
                logger.exception(
                    f"Change subscriber failed for {table}",
                    extra_fields={"change_type": change_type.value},
                )

    # -------------------------------------------------------------------------
    # Validation helpers
    # -------------------------------------------------------------------------

    def _check_table(self, table: str) -> Tuple[str, ...]:
        columns = TABLE_COLUMNS.get(table)
        if columns is None:
            raise UnknownTableError(f"Unknown table: {table}")
        return columns

    def _check_columns(self, table: str, names) -> None:
        columns = self._check_table(table)
        unknown = [name for name in names if name not in columns]
        if unknown:
            raise StoreError(f"Unknown columns for {table}: {unknown}")
