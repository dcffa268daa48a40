"""
ERP Order Intake Tests

Covers payload validation, storage of accepted and rejected orders,
duplicate PO handling and intake metrics.
"""

import pytest

from core.observability.metrics import get_metrics
from datastore.base import ORDERS_TABLE, eq
from datastore.memory import InMemoryRecordStore
from intake.erp_orders import DuplicateOrderError, receive_erp_order, validate_erp_order


def valid_payload(**overrides) -> dict:
    payload = {
        "po_number": "PO-2026-0042",
        "product_type": "FCV Virginia",
        "quantity_kg": 1200,
        "delivery_date": "2026-04-01",
        "source_system": "SAP",
        "processing_unit_id": "PU-7",
    }
    payload.update(overrides)
    return payload


class TestValidation:

    def test_valid_payload(self):
        assert validate_erp_order(valid_payload()) == []

    def test_empty_payload_reports_every_field(self):
        assert validate_erp_order({}) == [
            "PO number is required and must be a non-empty string",
            "Product type is required and must be a non-empty string",
            "Quantity (kg) is required and must be a positive number",
            "Delivery date is required and must be a valid date string",
            "Source system is required and must be a non-empty string",
        ]

    @pytest.mark.parametrize("quantity", [0, -5, "100", True, None])
    def test_quantity_must_be_positive_number(self, quantity):
        errors = validate_erp_order(valid_payload(quantity_kg=quantity))
        assert errors == ["Quantity (kg) is required and must be a positive number"]

    def test_fractional_quantity_is_accepted(self):
        assert validate_erp_order(valid_payload(quantity_kg=12.5)) == []

    def test_unparseable_delivery_date(self):
        errors = validate_erp_order(valid_payload(delivery_date="31/02/2026"))
        assert errors == ["Delivery date must be a valid ISO date string"]

    @pytest.mark.parametrize("delivery_date", [
        "2026-04-01T08:00:00.5Z",
        "2026-04-01T08:00:00.12345+05:30",
    ])
    def test_delivery_date_with_trimmed_fraction(self, delivery_date):
        assert validate_erp_order(valid_payload(delivery_date=delivery_date)) == []

    def test_blank_strings_are_rejected(self):
        errors = validate_erp_order(valid_payload(po_number="   ", source_system=""))
        assert errors == [
            "PO number is required and must be a non-empty string",
            "Source system is required and must be a non-empty string",
        ]


class TestReceiveOrder:

    def test_valid_order_is_stored_pending(self):
        store = InMemoryRecordStore()
        result = receive_erp_order(store, valid_payload())

        assert result.success is True
        assert result.message == "Order received and processed successfully"
        assert result.po_number == "PO-2026-0042"

        row = store.get(ORDERS_TABLE, result.order_id)
        assert row["status"] == "pending"
        assert row["validation_status"] == "pending"
        assert row["processing_unit_id"] == "PU-7"

    def test_invalid_order_is_recorded_as_rejected(self):
        store = InMemoryRecordStore()
        result = receive_erp_order(store, valid_payload(quantity_kg=-1, product_type=None))

        assert result.success is False
        assert result.message == "Order validation failed"
        assert result.order_id is None
        assert len(result.errors) == 2

        rows = store.select(ORDERS_TABLE)
        assert len(rows) == 1
        row = rows[0]
        assert row["po_number"] == "PO-2026-0042"
        assert row["status"] == "rejected"
        assert row["validation_status"] == "rejected"
        assert row["product_type"] == "UNKNOWN"
        assert row["quantity_kg"] == 0
        assert row["validation_errors"] == {"errors": result.errors}

    def test_rejected_order_without_po_gets_placeholder(self):
        store = InMemoryRecordStore()
        receive_erp_order(store, {"product_type": "Burley"})

        row = store.select(ORDERS_TABLE)[0]
        assert row["po_number"].startswith("INVALID-")
        assert row["source_system"] == "UNKNOWN"

    def test_duplicate_po_number(self):
        store = InMemoryRecordStore()
        receive_erp_order(store, valid_payload())

        with pytest.raises(DuplicateOrderError) as exc_info:
            receive_erp_order(store, valid_payload(quantity_kg=5))

        assert exc_info.value.po_number == "PO-2026-0042"
        assert "already been received" in str(exc_info.value)
        assert len(store.select(ORDERS_TABLE, filters=[eq("po_number", "PO-2026-0042")])) == 1

    def test_rejected_resubmission_of_known_po_is_not_recorded(self):
        store = InMemoryRecordStore()
        receive_erp_order(store, valid_payload())

        result = receive_erp_order(store, valid_payload(quantity_kg=0))

        assert result.success is False
        assert len(store.select(ORDERS_TABLE)) == 1

    def test_stored_order_notifies_subscribers(self):
        store = InMemoryRecordStore()
        events = []
        store.subscribe(ORDERS_TABLE, events.append)

        receive_erp_order(store, valid_payload())
        assert len(events) == 1


class TestIntakeMetrics:

    def test_outcomes_are_counted(self):
        store = InMemoryRecordStore()
        before = get_metrics().get_summary()["intake"]

        receive_erp_order(store, valid_payload())
        receive_erp_order(store, valid_payload(po_number="PO-BAD", quantity_kg=0))
        with pytest.raises(DuplicateOrderError):
            receive_erp_order(store, valid_payload())

        after = get_metrics().get_summary()["intake"]
        assert after["accepted"] == before["accepted"] + 1
        assert after["rejected"] == before["rejected"] + 1
        assert after["duplicate"] == before["duplicate"] + 1
