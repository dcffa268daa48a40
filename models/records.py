"""Source record models - rows read from the supply-chain store.

These models are read-only projections of the five collections the
reconciliation report consumes. Unknown columns are ignored so the store
can carry more fields than the report needs.

Timestamps are kept as the raw text the store returned. They are parsed
only by the rules that need them, so one malformed value disables that
rule for one order instead of failing the whole snapshot. Numeric fields
are parsed here; the fetch layer reads a value that fails to parse as
missing.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (store backends return floats, ints, strings or None)
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from floats, ints or numeric strings.

    NaN and infinities are rejected like any other non-number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Boolean is not a quantity")
    if isinstance(value, (int, float)):
        value = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip().replace(",", "")
        if s == "":
            return None
        try:
            value = Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValueError(f"Not a finite number: {value}")
    return value


def _parse_identifier(value):
    """Identifiers are compared as text regardless of backend type."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _parse_timestamp_text(value):
    """Keep timestamps as ISO text; date/datetime objects are rendered."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value if value.strip() else None
    return str(value)


DecimalValue = Annotated[
    Decimal,
    BeforeValidator(_parse_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]
Identifier = Annotated[str, BeforeValidator(_parse_identifier)]
TimestampText = Annotated[str, BeforeValidator(_parse_timestamp_text)]


# =============================================================================
# Base Model
# =============================================================================

class RecordBase(BaseModel):
    """Base model for store rows."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


# =============================================================================
# Source Collections
# =============================================================================

class ProcurementOrder(RecordBase):
    """Purchase order received from an external ERP (erp_procurement_orders)."""
    id: Identifier
    po_number: Optional[str] = None
    product_type: Optional[str] = None
    quantity_kg: Optional[DecimalValue] = None
    confirmed_quantity_kg: Optional[DecimalValue] = None
    delivery_date: Optional[TimestampText] = None
    validation_status: Optional[str] = None
    status: Optional[str] = None
    source_system: Optional[str] = None
    created_at: Optional[TimestampText] = None


class DispatchSchedule(RecordBase):
    """Links an order to the physical batch queued for shipment (warehouse_dispatch_schedule)."""
    id: Identifier
    erp_order_id: Optional[Identifier] = None
    batch_id: Optional[Identifier] = None
    dispatch_status: Optional[str] = None
    scheduled_dispatch_date: Optional[TimestampText] = None


class Shipment(RecordBase):
    """Movement of a batch between locations (shipments)."""
    id: Identifier
    batch_id: Optional[Identifier] = None
    status: Optional[str] = None
    departure_time: Optional[TimestampText] = None
    actual_arrival: Optional[TimestampText] = None
    eta: Optional[TimestampText] = None


class Invoice(RecordBase):
    """Tax invoice raised for a batch (invoices)."""
    id: Identifier
    batch_id: Optional[Identifier] = None
    amount: Optional[DecimalValue] = None
    gst_number: Optional[str] = None
    gst_amount: Optional[DecimalValue] = None
    invoice_number: Optional[str] = None


class DeliveryConfirmation(RecordBase):
    """Proof of delivery submitted by a driver (delivery_confirmations)."""
    id: Identifier
    shipment_id: Optional[Identifier] = None
    confirmed_at: Optional[TimestampText] = None
    photo_url: Optional[str] = None
    signature_url: Optional[str] = None
