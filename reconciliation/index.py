"""Lookup maps over a fetched snapshot."""

from dataclasses import dataclass, field
from typing import Dict, List

from models.records import DeliveryConfirmation, DispatchSchedule, Invoice, Shipment
from reconciliation.fetch import ReconciliationSnapshot


@dataclass
class ReconciliationIndex:
    """Keyed access to the downstream links of an order.

    Attributes:
        dispatch_by_order_id: Dispatch per originating order (last write wins)
        shipments_by_batch_id: All shipments per batch, in fetch order
        invoice_by_batch_id: Invoice per batch (last write wins)
        delivery_by_shipment_id: Delivery confirmation per shipment (last write wins)
    """
    dispatch_by_order_id: Dict[str, DispatchSchedule] = field(default_factory=dict)
    shipments_by_batch_id: Dict[str, List[Shipment]] = field(default_factory=dict)
    invoice_by_batch_id: Dict[str, Invoice] = field(default_factory=dict)
    delivery_by_shipment_id: Dict[str, DeliveryConfirmation] = field(default_factory=dict)


def build_index(snapshot: ReconciliationSnapshot) -> ReconciliationIndex:
    """Build the lookup maps. Rows with an empty key are left out."""
    index = ReconciliationIndex()

    for dispatch in snapshot.dispatches:
        if dispatch.erp_order_id:
            index.dispatch_by_order_id[dispatch.erp_order_id] = dispatch

    for shipment in snapshot.shipments:
        if shipment.batch_id:
            index.shipments_by_batch_id.setdefault(shipment.batch_id, []).append(shipment)

    for invoice in snapshot.invoices:
        if invoice.batch_id:
            index.invoice_by_batch_id[invoice.batch_id] = invoice

    for delivery in snapshot.deliveries:
        if delivery.shipment_id:
            index.delivery_by_shipment_id[delivery.shipment_id] = delivery

    return index
