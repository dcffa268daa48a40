"""
Index and Aggregate Tests

Covers lookup map construction over a snapshot (duplicate keys, empty keys,
multi-shipment batches) and summary counting over reconciliation records.
"""

from models.records import DeliveryConfirmation, DispatchSchedule, Invoice, ProcurementOrder, Shipment
from models.refs import ReconciliationRecord, ReconciliationStatus, SummaryCounts
from reconciliation.aggregate import summarize
from reconciliation.fetch import ReconciliationSnapshot
from reconciliation.index import build_index


def _snapshot(**collections) -> ReconciliationSnapshot:
    return ReconciliationSnapshot(**{name: tuple(rows) for name, rows in collections.items()})


class TestBuildIndex:

    def test_empty_snapshot(self):
        index = build_index(ReconciliationSnapshot())
        assert index.dispatch_by_order_id == {}
        assert index.shipments_by_batch_id == {}
        assert index.invoice_by_batch_id == {}
        assert index.delivery_by_shipment_id == {}

    def test_last_dispatch_for_an_order_wins(self):
        snapshot = _snapshot(dispatches=[
            DispatchSchedule(id="D1", erp_order_id="O1", batch_id="B1"),
            DispatchSchedule(id="D2", erp_order_id="O1", batch_id="B2"),
        ])
        assert build_index(snapshot).dispatch_by_order_id["O1"].id == "D2"

    def test_shipments_are_grouped_in_fetch_order(self):
        snapshot = _snapshot(shipments=[
            Shipment(id="S1", batch_id="B1"),
            Shipment(id="S2", batch_id="B2"),
            Shipment(id="S3", batch_id="B1"),
        ])
        index = build_index(snapshot)
        assert [s.id for s in index.shipments_by_batch_id["B1"]] == ["S1", "S3"]
        assert [s.id for s in index.shipments_by_batch_id["B2"]] == ["S2"]

    def test_last_invoice_and_delivery_win(self):
        snapshot = _snapshot(
            invoices=[Invoice(id="I1", batch_id="B1"), Invoice(id="I2", batch_id="B1")],
            deliveries=[
                DeliveryConfirmation(id="C1", shipment_id="S1"),
                DeliveryConfirmation(id="C2", shipment_id="S1"),
            ],
        )
        index = build_index(snapshot)
        assert index.invoice_by_batch_id["B1"].id == "I2"
        assert index.delivery_by_shipment_id["S1"].id == "C2"

    def test_rows_without_keys_are_left_out(self):
        snapshot = _snapshot(
            dispatches=[DispatchSchedule(id="D1", erp_order_id=None)],
            shipments=[Shipment(id="S1", batch_id="")],
            invoices=[Invoice(id="I1")],
            deliveries=[DeliveryConfirmation(id="C1")],
        )
        index = build_index(snapshot)
        assert index.dispatch_by_order_id == {}
        assert index.shipments_by_batch_id == {}
        assert index.invoice_by_batch_id == {}
        assert index.delivery_by_shipment_id == {}

    def test_numeric_identifiers_are_matched_as_text(self):
        snapshot = _snapshot(dispatches=[DispatchSchedule(id=1, erp_order_id=42, batch_id=7)])
        dispatch = build_index(snapshot).dispatch_by_order_id["42"]
        assert dispatch.batch_id == "7"


def _record(status, gst_compliant=False, audit_ready=False) -> ReconciliationRecord:
    return ReconciliationRecord(
        order=ProcurementOrder(id="O"),
        status=status,
        gst_compliant=gst_compliant,
        audit_ready=audit_ready,
    )


class TestSummarize:

    def test_empty_input(self):
        assert summarize([]) == SummaryCounts()

    def test_counts_by_status_and_flags(self):
        records = [
            _record(ReconciliationStatus.MATCHED, gst_compliant=True, audit_ready=True),
            _record(ReconciliationStatus.PARTIAL, gst_compliant=True),
            _record(ReconciliationStatus.PARTIAL),
            _record(ReconciliationStatus.MISSING_DATA),
        ]
        counts = summarize(records)

        assert counts.total == 4
        assert counts.matched == 1
        assert counts.partial == 2
        assert counts.missing_data == 1
        assert counts.gst_compliant_count == 2
        assert counts.audit_ready_count == 1

    def test_status_counts_always_add_up(self):
        statuses = [ReconciliationStatus.PARTIAL] * 5 + [ReconciliationStatus.MISSING_DATA] * 3
        counts = summarize(_record(s) for s in statuses)
        assert counts.matched + counts.partial + counts.missing_data == counts.total == 8
