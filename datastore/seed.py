"""Sample supply-chain data for local runs and demos.

Loads four orders that exercise the main reconciliation outcomes:
    O1 - full chain, GST invoice, confirmed delivery (matched, audit ready)
    O2 - no dispatch schedule (missing data)
    O3 - delivered shipment with no invoice (partial)
    O4 - delivered 5 days after the requested date (partial, date variance)
"""

from typing import Dict, List

from core.observability.logging import get_logger
from datastore.base import (
    DELIVERIES_TABLE,
    DISPATCH_TABLE,
    INVOICES_TABLE,
    ORDERS_TABLE,
    RecordStore,
    SHIPMENTS_TABLE,
)


logger = get_logger(__name__)


SAMPLE_ORDERS: List[Dict] = [
    {
        "id": "O1",
        "po_number": "PO-2026-0001",
        "product_type": "FCV Virginia",
        "quantity_kg": 100,
        "confirmed_quantity_kg": 100,
        "delivery_date": "2026-03-10T00:00:00",
        "validation_status": "accepted",
        "status": "confirmed",
        "source_system": "SAP",
        "created_at": "2026-03-01T09:00:00",
    },
    {
        "id": "O2",
        "po_number": "PO-2026-0002",
        "product_type": "Burley",
        "quantity_kg": 250,
        "delivery_date": "2026-03-12T00:00:00",
        "validation_status": "pending",
        "status": "pending",
        "source_system": "Oracle",
        "created_at": "2026-03-02T09:00:00",
    },
    {
        "id": "O3",
        "po_number": "PO-2026-0003",
        "product_type": "Oriental",
        "quantity_kg": 80,
        "confirmed_quantity_kg": 80,
        "delivery_date": "2026-03-14T00:00:00",
        "validation_status": "accepted",
        "status": "confirmed",
        "source_system": "SAP",
        "created_at": "2026-03-03T09:00:00",
    },
    {
        "id": "O4",
        "po_number": "PO-2026-0004",
        "product_type": "FCV Virginia",
        "quantity_kg": 50,
        "confirmed_quantity_kg": 50,
        "delivery_date": "2026-03-15T00:00:00",
        "validation_status": "accepted",
        "status": "confirmed",
        "source_system": "Tally",
        "created_at": "2026-03-04T09:00:00",
    },
]

SAMPLE_DISPATCH: List[Dict] = [
    {"id": "D1", "erp_order_id": "O1", "batch_id": "B1", "dispatch_status": "completed",
     "scheduled_dispatch_date": "2026-03-08T06:00:00", "warehouse_id": "WH-1"},
    {"id": "D3", "erp_order_id": "O3", "batch_id": "B3", "dispatch_status": "completed",
     "scheduled_dispatch_date": "2026-03-11T06:00:00", "warehouse_id": "WH-1"},
    {"id": "D4", "erp_order_id": "O4", "batch_id": "B4", "dispatch_status": "completed",
     "scheduled_dispatch_date": "2026-03-13T06:00:00", "warehouse_id": "WH-2"},
]

SAMPLE_SHIPMENTS: List[Dict] = [
    {"id": "S1", "batch_id": "B1", "status": "delivered",
     "departure_time": "2026-03-08T08:00:00", "actual_arrival": "2026-03-10T00:00:00",
     "from_location": "Guntur", "to_location": "Bengaluru"},
    {"id": "S3", "batch_id": "B3", "status": "delivered",
     "departure_time": "2026-03-11T08:00:00", "actual_arrival": "2026-03-14T10:00:00",
     "from_location": "Guntur", "to_location": "Chennai"},
    {"id": "S4", "batch_id": "B4", "status": "delivered",
     "departure_time": "2026-03-16T08:00:00", "actual_arrival": "2026-03-20T00:00:00",
     "from_location": "Mysuru", "to_location": "Hyderabad"},
]

SAMPLE_INVOICES: List[Dict] = [
    {"id": "I1", "batch_id": "B1", "amount": 1000, "gst_number": "29ABCDE1234F1Z5",
     "gst_amount": 180, "invoice_number": "INV-0001"},
    {"id": "I4", "batch_id": "B4", "amount": 500, "gst_number": "36ABCDE1234F1Z5",
     "gst_amount": 90, "invoice_number": "INV-0004"},
]

SAMPLE_DELIVERIES: List[Dict] = [
    {"id": "C1", "shipment_id": "S1", "confirmed_at": "2026-03-10T01:00:00",
     "photo_url": "proofs/S1.jpg", "signature_url": "proofs/S1.png", "recipient_name": "R. Rao"},
    {"id": "C4", "shipment_id": "S4", "confirmed_at": "2026-03-20T02:00:00",
     "photo_url": "proofs/S4.jpg", "signature_url": "proofs/S4.png", "recipient_name": "K. Iyer"},
]


def seed_sample_data(store: RecordStore) -> Dict[str, int]:
    """Insert the sample scenarios into ``store``.

    Returns:
        Number of rows inserted per table
    """
    counts = {}
    for table, rows in (
        (ORDERS_TABLE, SAMPLE_ORDERS),
        (DISPATCH_TABLE, SAMPLE_DISPATCH),
        (SHIPMENTS_TABLE, SAMPLE_SHIPMENTS),
        (INVOICES_TABLE, SAMPLE_INVOICES),
        (DELIVERIES_TABLE, SAMPLE_DELIVERIES),
    ):
        for row in rows:
            store.insert(table, dict(row))
        counts[table] = len(rows)

    logger.info("Sample data loaded", extra_fields=counts)
    return counts
