"""ERP procurement order intake.

Validates an order payload pushed by an external ERP system and stores it in
erp_procurement_orders. Invalid payloads are still recorded, with status
'rejected' and the validation errors, so failed submissions stay visible.

Usage:
    result = receive_erp_order(store, {
        "po_number": "PO-2026-0042",
        "product_type": "FCV Virginia",
        "quantity_kg": 1200,
        "delivery_date": "2026-04-01",
        "source_system": "SAP",
    })
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from datastore.base import DuplicateRecordError, ORDERS_TABLE, RecordStore
from reconciliation.rules import parse_timestamp


logger = get_logger(__name__)


class DuplicateOrderError(Exception):
    """An order with the same PO number has already been received."""

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Duplicate PO number {po_number!r}. This order has already been received.")


class IntakeResult(BaseModel):
    """Outcome of one intake request."""
    success: bool
    message: str
    order_id: Optional[str] = None
    po_number: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# Validation
# =============================================================================

def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


def validate_erp_order(payload: Dict[str, Any]) -> List[str]:
    """Return every validation error in the payload (empty if valid)."""
    errors = []

    if not _non_empty_string(payload.get("po_number")):
        errors.append("PO number is required and must be a non-empty string")

    if not _non_empty_string(payload.get("product_type")):
        errors.append("Product type is required and must be a non-empty string")

    if not _positive_number(payload.get("quantity_kg")):
        errors.append("Quantity (kg) is required and must be a positive number")

    delivery_date = payload.get("delivery_date")
    if not delivery_date or not isinstance(delivery_date, str):
        errors.append("Delivery date is required and must be a valid date string")
    else:
        try:
            parse_timestamp(delivery_date)
        except ValueError:
            errors.append("Delivery date must be a valid ISO date string")

    if not _non_empty_string(payload.get("source_system")):
        errors.append("Source system is required and must be a non-empty string")

    return errors


# =============================================================================
# Intake
# =============================================================================

def _record_rejected(store: RecordStore, payload: Dict[str, Any], errors: List[str]) -> None:
    """Store a rejected order, substituting placeholders for unusable fields."""
    now = datetime.utcnow()

    def text_or(field: str, placeholder: str) -> str:
        value = payload.get(field)
        return value if _non_empty_string(value) else placeholder

    quantity = payload.get("quantity_kg")
    row = {
        "po_number": text_or("po_number", f"INVALID-{int(now.timestamp() * 1000)}"),
        "product_type": text_or("product_type", "UNKNOWN"),
        "quantity_kg": quantity if _positive_number(quantity) else 0,
        "delivery_date": text_or("delivery_date", now.isoformat()),
        "processing_unit_id": payload.get("processing_unit_id"),
        "source_system": text_or("source_system", "UNKNOWN"),
        "status": "rejected",
        "validation_status": "rejected",
        "validation_errors": {"errors": errors},
    }
    try:
        store.insert(ORDERS_TABLE, row)
    except DuplicateRecordError:
        logger.warning(f"Rejected order not recorded; PO number {row['po_number']} already exists")


def receive_erp_order(store: RecordStore, payload: Dict[str, Any]) -> IntakeResult:
    """Validate and store an ERP order.

    Args:
        store: Record store holding erp_procurement_orders
        payload: Order fields as received from the ERP system

    Returns:
        IntakeResult with success=False and the error list if validation failed

    Raises:
        DuplicateOrderError: If the PO number has already been received
        StoreError: If the insert fails for any other reason
    """
    metrics = get_metrics()
    po_number = payload.get("po_number") if isinstance(payload.get("po_number"), str) else None

    with with_correlation(po_number=po_number):
        logger.info(
            "Received ERP order",
            extra_fields={"source_system": payload.get("source_system")},
        )

        errors = validate_erp_order(payload)
        if errors:
            logger.warning(f"Order validation failed: {errors}")
            _record_rejected(store, payload, errors)
            metrics.record_order_rejected()
            return IntakeResult(
                success=False,
                message="Order validation failed",
                po_number=po_number,
                errors=errors,
            )

        try:
            stored = store.insert(ORDERS_TABLE, {
                "po_number": payload["po_number"],
                "product_type": payload["product_type"],
                "quantity_kg": payload["quantity_kg"],
                "delivery_date": payload["delivery_date"],
                "processing_unit_id": payload.get("processing_unit_id"),
                "source_system": payload["source_system"],
                "status": "pending",
                "validation_status": "pending",
            })
        except DuplicateRecordError as e:
            metrics.record_order_duplicate()
            logger.warning(f"Duplicate PO number {po_number}")
            raise DuplicateOrderError(po_number) from e

        metrics.record_order_accepted()
        logger.info(f"Order stored with id {stored['id']}")
        return IntakeResult(
            success=True,
            message="Order received and processed successfully",
            order_id=stored["id"],
            po_number=po_number,
        )
