"""Reconciliation engine for ERP procurement orders.

Walks each order through order -> dispatch -> shipment -> invoice -> delivery
and derives its status, mismatches and suggestions.

Exposes high-level functions:
- reconcile_order(order, index, policy) -> ReconciliationRecord
- reconcile_snapshot(snapshot, policy) -> List[ReconciliationRecord]
- run_reconciliation(store, policy) -> ReconciliationReport
"""

import time
import uuid
from datetime import datetime
from typing import List, Optional

from core.observability.logging import get_logger, log_stage_complete, with_correlation
from core.observability.metrics import record_processing_time
from datastore.base import RecordStore
from models.records import ProcurementOrder
from models.refs import ReconciliationRecord, ReconciliationReport, ReconciliationStatus
from reconciliation.aggregate import summarize
from reconciliation.fetch import ReconciliationSnapshot, fetch_snapshot
from reconciliation.index import ReconciliationIndex, build_index
from reconciliation.rules import (
    OrderChain,
    ReconciliationPolicy,
    is_gst_compliant,
    run_rules,
    select_shipment,
)


logger = get_logger(__name__)


# =============================================================================
# Per-order Reconciliation
# =============================================================================

def resolve_chain(
    order: ProcurementOrder,
    index: ReconciliationIndex,
    policy: ReconciliationPolicy,
) -> OrderChain:
    """Look up the downstream links of one order."""
    dispatch = index.dispatch_by_order_id.get(order.id)
    shipment = None
    invoice = None
    if dispatch is not None and dispatch.batch_id:
        candidates = index.shipments_by_batch_id.get(dispatch.batch_id, [])
        shipment = select_shipment(candidates, policy.shipment_selection)
        invoice = index.invoice_by_batch_id.get(dispatch.batch_id)
    delivery = index.delivery_by_shipment_id.get(shipment.id) if shipment is not None else None

    return OrderChain(
        order=order,
        dispatch=dispatch,
        shipment=shipment,
        invoice=invoice,
        delivery=delivery,
    )


def reconcile_order(
    order: ProcurementOrder,
    index: ReconciliationIndex,
    policy: Optional[ReconciliationPolicy] = None,
) -> ReconciliationRecord:
    """Reconcile one order against the indexed snapshot."""
    policy = policy or ReconciliationPolicy()
    chain = resolve_chain(order, index, policy)
    findings = run_rules(chain, policy)
    gst_compliant = is_gst_compliant(chain.invoice)

    audit_ready = (
        order.validation_status == "accepted"
        and chain.dispatch is not None
        and chain.delivered
        and chain.delivery is not None
        and chain.invoice is not None
        and gst_compliant
        and not findings
    )

    if audit_ready:
        status = ReconciliationStatus.MATCHED
    elif chain.dispatch is not None and (chain.shipment is not None or chain.invoice is not None):
        status = ReconciliationStatus.PARTIAL
    else:
        status = ReconciliationStatus.MISSING_DATA

    return ReconciliationRecord(
        order=order,
        dispatch=chain.dispatch,
        shipment=chain.shipment,
        invoice=chain.invoice,
        delivery=chain.delivery,
        status=status,
        mismatches=[f.mismatch for f in findings],
        suggestions=[f.suggestion for f in findings],
        gst_compliant=gst_compliant,
        audit_ready=audit_ready,
    )


def reconcile_snapshot(
    snapshot: ReconciliationSnapshot,
    policy: Optional[ReconciliationPolicy] = None,
    index: Optional[ReconciliationIndex] = None,
) -> List[ReconciliationRecord]:
    """Reconcile every order in the snapshot, preserving fetch order."""
    policy = policy or ReconciliationPolicy()
    index = index or build_index(snapshot)
    return [reconcile_order(order, index, policy) for order in snapshot.orders]


# =============================================================================
# Full Pass
# =============================================================================

def _timed(stage: str, start: float, **kwargs) -> float:
    duration_ms = (time.perf_counter() - start) * 1000
    record_processing_time(stage, duration_ms)
    log_stage_complete(stage, duration_ms, **kwargs)
    return duration_ms


def run_reconciliation(
    store: RecordStore,
    policy: Optional[ReconciliationPolicy] = None,
    run_id: Optional[str] = None,
) -> ReconciliationReport:
    """Run fetch, index, reconcile and aggregate over the store.

    Args:
        store: Record store holding the five source collections
        policy: Rule parameters; built-in defaults if omitted
        run_id: Identifier for the pass; generated if omitted

    Returns:
        ReconciliationReport with records in fetch order and summary counts

    Raises:
        FetchError: If any of the five reads fails
    """
    policy = policy or ReconciliationPolicy()
    run_id = run_id or f"recon-{uuid.uuid4().hex[:12]}"

    with with_correlation(run_id=run_id):
        start = time.perf_counter()
        snapshot = fetch_snapshot(store)
        _timed("fetch", start, **snapshot.counts())

        start = time.perf_counter()
        index = build_index(snapshot)
        _timed("index", start)

        start = time.perf_counter()
        records = reconcile_snapshot(snapshot, policy, index)
        _timed("reconcile", start, record_count=len(records))

        start = time.perf_counter()
        stats = summarize(records)
        _timed("aggregate", start)

        report = ReconciliationReport(
            run_id=run_id,
            generated_at=datetime.utcnow(),
            snapshot_hash=snapshot.content_hash(),
            records=records,
            stats=stats,
        )
        logger.info(
            f"Reconciled {stats.total} orders: {stats.matched} matched, "
            f"{stats.partial} partial, {stats.missing_data} missing data",
            extra_fields=stats.model_dump(),
        )
        return report
