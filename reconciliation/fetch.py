"""Data access for the reconciliation report.

Reads the five source collections in one pass:
- procurement orders, newest first by created_at
- dispatch schedules, shipments, invoices, delivery confirmations in store order

Any failed query aborts the whole fetch; partial results are discarded.
A malformed optional field is logged and read as missing; only a row
without a usable id fails the fetch.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.observability.logging import get_logger
from datastore.base import (
    DELIVERIES_TABLE,
    DISPATCH_TABLE,
    INVOICES_TABLE,
    ORDERS_TABLE,
    RecordStore,
    SHIPMENTS_TABLE,
    StoreError,
)
from models.records import (
    DeliveryConfirmation,
    DispatchSchedule,
    Invoice,
    ProcurementOrder,
    Shipment,
)


logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class FetchError(Exception):
    """One of the five source reads failed; the pass is aborted."""

    def __init__(self, table: str, cause: Exception):
        self.table = table
        self.cause = cause
        super().__init__(f"Failed to fetch {table}: {cause}")


@dataclass(frozen=True)
class ReconciliationSnapshot:
    """The five collections read for one reconciliation pass."""
    orders: Tuple[ProcurementOrder, ...] = ()
    dispatches: Tuple[DispatchSchedule, ...] = ()
    shipments: Tuple[Shipment, ...] = ()
    invoices: Tuple[Invoice, ...] = ()
    deliveries: Tuple[DeliveryConfirmation, ...] = ()

    def counts(self) -> dict:
        return {
            "orders": len(self.orders),
            "dispatches": len(self.dispatches),
            "shipments": len(self.shipments),
            "invoices": len(self.invoices),
            "deliveries": len(self.deliveries),
        }

    def content_hash(self) -> str:
        """SHA256 over the canonical JSON of all five collections.

        Two snapshots with the same rows in the same order hash equal.
        """
        payload = {
            "orders": [o.model_dump(mode="json") for o in self.orders],
            "dispatches": [d.model_dump(mode="json") for d in self.dispatches],
            "shipments": [s.model_dump(mode="json") for s in self.shipments],
            "invoices": [i.model_dump(mode="json") for i in self.invoices],
            "deliveries": [c.model_dump(mode="json") for c in self.deliveries],
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _parse_row(table: str, model: Type[M], row: Dict[str, Any]) -> M:
    """Validate one row, dropping malformed optional fields.

    A field that does not parse is treated as missing, so only the rules
    that need it are skipped for this row. Rows without a usable id still
    fail the fetch.
    """
    try:
        return model.model_validate(row)
    except ValidationError as e:
        errors = e.errors()
        if not isinstance(row, dict) or any(not err["loc"] or err["loc"][0] == "id" for err in errors):
            raise

        row_id = row.get("id")
        cleaned = dict(row)
        for err in errors:
            column = err["loc"][0]
            logger.warning(
                f"Ignoring malformed {column} on {table} row {row_id}: {err['msg']}",
                extra_fields={"table": table, "row_id": row_id, "column": column},
            )
            cleaned[column] = None
        return model.model_validate(cleaned)


def _read(store: RecordStore, table: str, model: Type[M], **query) -> Tuple[M, ...]:
    try:
        rows = store.select(table, **query)
        return tuple(_parse_row(table, model, row) for row in rows)
    except (StoreError, ValidationError) as e:
        logger.error(f"Fetch of {table} failed: {e}", extra_fields={"table": table})
        raise FetchError(table, e) from e


def fetch_snapshot(store: RecordStore) -> ReconciliationSnapshot:
    """Read the five collections from the store.

    Raises:
        FetchError: If any query fails or a row has no usable id
    """
    snapshot = ReconciliationSnapshot(
        orders=_read(store, ORDERS_TABLE, ProcurementOrder, order_by="created_at", descending=True),
        dispatches=_read(store, DISPATCH_TABLE, DispatchSchedule),
        shipments=_read(store, SHIPMENTS_TABLE, Shipment),
        invoices=_read(store, INVOICES_TABLE, Invoice),
        deliveries=_read(store, DELIVERIES_TABLE, DeliveryConfirmation),
    )
    logger.debug("Snapshot fetched", extra_fields=snapshot.counts())
    return snapshot
