"""Reconciliation rules and the policy that parameterizes them.

Each rule looks at one order and its resolved downstream links and either
returns a Finding (a mismatch with its paired remediation suggestion) or
None. Rules are independent: any combination can fire for the same order.

Rules (in evaluation order):
    MISSING_DISPATCH            - no dispatch schedule for the order
    DISPATCH_WITHOUT_SHIPMENT   - dispatch not completed and no shipment
    DELIVERED_WITHOUT_CONFIRMATION
    DELIVERED_WITHOUT_INVOICE
    ORDER_QUANTITY_MISMATCH     - confirmed vs ordered quantity on the order row
    DELIVERY_DATE_VARIANCE      - actual arrival vs requested delivery date
    INVOICE_AMOUNT_DISCREPANCY  - invoice amount vs confirmed quantity x rate
    GST_INCOMPLETE              - delivered without a GST-compliant invoice
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import TypeAdapter, ValidationError
from typing_extensions import Protocol

from core.config import Settings, get_settings
from core.observability.logging import get_logger
from models.records import (
    DeliveryConfirmation,
    DispatchSchedule,
    Invoice,
    ProcurementOrder,
    Shipment,
)


logger = get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

_DATETIME = TypeAdapter(datetime)
_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")


# =============================================================================
# Findings
# =============================================================================

@dataclass(frozen=True)
class Finding:
    """One mismatch raised by a rule, with its paired suggestion."""
    check_id: str
    mismatch: str
    suggestion: str


@dataclass(frozen=True)
class OrderChain:
    """An order and the downstream links resolved for it."""
    order: ProcurementOrder
    dispatch: Optional[DispatchSchedule] = None
    shipment: Optional[Shipment] = None
    invoice: Optional[Invoice] = None
    delivery: Optional[DeliveryConfirmation] = None

    @property
    def delivered(self) -> bool:
        return self.shipment is not None and self.shipment.status == "delivered"


# =============================================================================
# Policy
# =============================================================================

class RateLookup(Protocol):
    """Unit price per kg for the batch an order shipped in."""

    def rate_for(self, batch_id: Optional[str], order: ProcurementOrder) -> Decimal:
        ...


@dataclass(frozen=True)
class FlatRateLookup:
    """Same rate for every batch."""
    rate: Decimal = Decimal("10")

    def rate_for(self, batch_id: Optional[str], order: ProcurementOrder) -> Decimal:
        return self.rate


class ShipmentSelection(str, Enum):
    """How to pick one shipment when a batch has several."""
    FIRST = "first"
    LATEST_DEPARTURE = "latest_departure"


@dataclass(frozen=True)
class ReconciliationPolicy:
    """Tunable inputs to the rules.

    Attributes:
        rate_lookup: Price per kg used for the invoice amount check
        amount_tolerance: Allowed absolute invoice amount difference
        date_variance_days: Allowed delivery drift in whole days
        shipment_selection: Tie-break for batches with several shipments
    """
    rate_lookup: RateLookup = field(default_factory=FlatRateLookup)
    amount_tolerance: Decimal = Decimal("100")
    date_variance_days: int = 2
    shipment_selection: ShipmentSelection = ShipmentSelection.FIRST

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReconciliationPolicy":
        settings = settings or get_settings()
        return cls(
            rate_lookup=FlatRateLookup(settings.unit_rate),
            amount_tolerance=settings.amount_tolerance,
            date_variance_days=settings.date_variance_days,
            shipment_selection=ShipmentSelection(settings.shipment_selection),
        )


# =============================================================================
# Utility Functions
# =============================================================================

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or datetime string to an aware UTC datetime.

    Accepts a trailing 'Z' and fractional seconds of any precision. Naive
    values are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO date or datetime
    """
    if value is None:
        return None
    text = value.strip()
    if not _ISO_DATE_PREFIX.match(text):
        raise ValueError(f"Not an ISO date or datetime: {value!r}")
    if text.endswith("z"):
        text = text[:-1] + "Z"
    try:
        parsed = _DATETIME.validate_python(text)
    except ValidationError:
        raise ValueError(f"Not an ISO date or datetime: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def select_shipment(
    candidates: Sequence[Shipment],
    selection: ShipmentSelection = ShipmentSelection.FIRST,
) -> Optional[Shipment]:
    """Pick the shipment that represents a batch."""
    if not candidates:
        return None
    if selection == ShipmentSelection.FIRST:
        return candidates[0]

    chosen = None
    chosen_departure = None
    for shipment in candidates:
        try:
            departure = parse_timestamp(shipment.departure_time)
        except ValueError:
            departure = None
        if departure is None:
            continue
        # strict comparison keeps the earliest in store order on ties
        if chosen_departure is None or departure > chosen_departure:
            chosen, chosen_departure = shipment, departure
    return chosen if chosen is not None else candidates[0]


def is_gst_compliant(invoice: Optional[Invoice]) -> bool:
    """Invoice present with GST number, GST amount and invoice number all set."""
    if invoice is None:
        return False
    return bool(invoice.gst_number and invoice.gst_amount and invoice.invoice_number)


def _format_kg(value: Optional[Decimal]) -> str:
    if value is None:
        return "?"
    return format(value.normalize(), "f")


# =============================================================================
# Individual Check Functions
# =============================================================================

def check_missing_dispatch(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    if chain.dispatch is None:
        return Finding(
            check_id="MISSING_DISPATCH",
            mismatch="Missing dispatch schedule",
            suggestion="Create dispatch schedule in warehouse validation",
        )
    return None


def check_dispatch_without_shipment(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    if chain.dispatch is not None and chain.dispatch.dispatch_status != "completed" and chain.shipment is None:
        return Finding(
            check_id="DISPATCH_WITHOUT_SHIPMENT",
            mismatch="Dispatch scheduled but no shipment created",
            suggestion="Ensure shipment is created when dispatch starts",
        )
    return None


def check_delivered_without_confirmation(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    if chain.delivered and chain.delivery is None:
        return Finding(
            check_id="DELIVERED_WITHOUT_CONFIRMATION",
            mismatch="Shipment delivered but no delivery confirmation",
            suggestion="Request driver to submit delivery confirmation",
        )
    return None


def check_delivered_without_invoice(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    if chain.delivered and chain.invoice is None:
        return Finding(
            check_id="DELIVERED_WITHOUT_INVOICE",
            mismatch="Delivered order missing invoice",
            suggestion="Generate GST invoice for completed delivery",
        )
    return None


def order_quantity_mismatch(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    """Confirmed quantity differs from ordered quantity on the same order row.

    Only the order's own fields are compared; batch quantities are not
    consulted.
    """
    order = chain.order
    if not order.confirmed_quantity_kg:
        return None
    if order.quantity_kg is not None and order.confirmed_quantity_kg == order.quantity_kg:
        return None
    return Finding(
        check_id="ORDER_QUANTITY_MISMATCH",
        mismatch=(
            f"Quantity mismatch: Ordered {_format_kg(order.quantity_kg)}kg, "
            f"confirmed {_format_kg(order.confirmed_quantity_kg)}kg"
        ),
        suggestion="Update ERP system with confirmed quantity",
    )


def check_delivery_date_variance(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    """Flag arrivals more than ``policy.date_variance_days`` from the requested date.

    The day difference is floored, so an arrival 2.5 days early counts as 3.
    """
    order = chain.order
    if not order.delivery_date or chain.shipment is None or not chain.shipment.actual_arrival:
        return None

    try:
        expected = parse_timestamp(order.delivery_date)
        actual = parse_timestamp(chain.shipment.actual_arrival)
    except ValueError as e:
        logger.warning(
            f"Skipping delivery date check for order {order.id}: {e}",
            extra_fields={
                "order_id": order.id,
                "delivery_date": order.delivery_date,
                "actual_arrival": chain.shipment.actual_arrival,
            },
        )
        return None

    days = math.floor((actual - expected).total_seconds() / SECONDS_PER_DAY)
    if abs(days) <= policy.date_variance_days:
        return None

    direction = "Late" if days > 0 else "Early"
    return Finding(
        check_id="DELIVERY_DATE_VARIANCE",
        mismatch=f"Delivery date variance: {direction} by {abs(days)} days",
        suggestion="Update ERP with actual delivery date and document reason",
    )


def check_invoice_amount(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    order = chain.order
    invoice = chain.invoice
    if invoice is None or not order.confirmed_quantity_kg or not invoice.amount:
        return None

    batch_id = chain.dispatch.batch_id if chain.dispatch else None
    rate = Decimal(str(policy.rate_lookup.rate_for(batch_id, order)))
    expected_amount = order.confirmed_quantity_kg * rate
    if abs(invoice.amount - expected_amount) <= policy.amount_tolerance:
        return None

    return Finding(
        check_id="INVOICE_AMOUNT_DISCREPANCY",
        mismatch="Invoice amount discrepancy detected",
        suggestion="Review pricing and recalculate invoice amount",
    )


def check_gst_compliance(chain: OrderChain, policy: ReconciliationPolicy) -> Optional[Finding]:
    if chain.delivered and not is_gst_compliant(chain.invoice):
        return Finding(
            check_id="GST_INCOMPLETE",
            mismatch="GST compliance incomplete",
            suggestion="Generate GST-compliant invoice with all required fields",
        )
    return None


Rule = Callable[[OrderChain, ReconciliationPolicy], Optional[Finding]]

RULES: Tuple[Rule, ...] = (
    check_missing_dispatch,
    check_dispatch_without_shipment,
    check_delivered_without_confirmation,
    check_delivered_without_invoice,
    order_quantity_mismatch,
    check_delivery_date_variance,
    check_invoice_amount,
    check_gst_compliance,
)


def run_rules(
    chain: OrderChain,
    policy: ReconciliationPolicy,
    rules: Sequence[Rule] = RULES,
) -> List[Finding]:
    """Evaluate every rule against one chain, in order."""
    findings = []
    for rule in rules:
        finding = rule(chain, policy)
        if finding is not None:
            findings.append(finding)
    return findings
