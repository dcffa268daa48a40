"""Reconciliation activities for scheduled runs.

Temporal activity that runs one full reconciliation pass over the sqlite
store, appends it to the run log and optionally exports the report.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from temporalio import activity

from core.audit.runs import SQLiteRunLog, completed_run, failed_run
from core.config import get_settings
from core.observability.logging import log_activity_complete, log_activity_start, with_correlation
from core.observability.metrics import get_metrics
from datastore.sqlite_store import SQLiteRecordStore
from reconciliation.engine import run_reconciliation
from reconciliation.fetch import FetchError
from reconciliation.rules import ReconciliationPolicy
from storage.artifacts import export_report


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ReconcileOrdersInput:
    """Input for reconcile_orders activity.

    Attributes:
        db_path: sqlite database to read (settings default if omitted)
        export: Write the report JSON to the artifacts directory
        artifacts_dir: Export directory (settings default if omitted)
        trigger: Recorded in the run log
        run_id: Run identifier (generated if omitted)
    """
    db_path: Optional[str] = None
    export: bool = False
    artifacts_dir: Optional[str] = None
    trigger: str = "workflow"
    run_id: Optional[str] = None


@dataclass
class ReconcileOrdersOutput:
    """Output from reconcile_orders activity.

    Attributes:
        run_id: Identifier of the pass
        status: COMPLETED or FAILED
        record_count: Number of orders reconciled
        matched / partial / missing_data: Status counts
        gst_compliant_count / audit_ready_count: Compliance counts
        snapshot_hash: Hash of the input snapshot
        report_ref: Serialized DataReference to the exported report, if exported
        error: Failure message for FAILED runs
    """
    run_id: str
    status: str
    record_count: int = 0
    matched: int = 0
    partial: int = 0
    missing_data: int = 0
    gst_compliant_count: int = 0
    audit_ready_count: int = 0
    snapshot_hash: Optional[str] = None
    report_ref: Optional[dict] = None
    error: Optional[str] = None


# =============================================================================
# Activity Definition
# =============================================================================

@activity.defn
async def reconcile_orders(input: ReconcileOrdersInput) -> ReconcileOrdersOutput:
    """Reconcile every procurement order in the store.

    A fetch failure is recorded in the run log and returned as a FAILED
    output rather than raised, so the workflow does not retry it.

    Args:
        input: ReconcileOrdersInput with store location and export options

    Returns:
        ReconcileOrdersOutput with counts and the optional report reference
    """
    settings = get_settings()
    db_path = Path(input.db_path) if input.db_path else settings.database_path
    artifacts_dir = Path(input.artifacts_dir) if input.artifacts_dir else settings.artifacts_dir
    run_id = input.run_id or f"recon-{uuid.uuid4().hex[:12]}"

    metrics = get_metrics()
    started_at = datetime.utcnow()
    start = time.perf_counter()

    with with_correlation(run_id=run_id, trigger=input.trigger, activity_name="reconcile_orders"):
        log_activity_start("reconcile_orders", db_path=str(db_path))
        activity.logger.info(f"Reconciling orders in {db_path} (run {run_id})")

        store = SQLiteRecordStore(db_path)
        run_log = SQLiteRunLog(db_path)
        metrics.record_run_started(input.trigger)

        try:
            report = run_reconciliation(store, ReconciliationPolicy.from_settings(settings), run_id)
        except FetchError as e:
            metrics.record_run_failed(input.trigger, str(e))
            run_log.append(failed_run(run_id, started_at, input.trigger, str(e)))
            activity.logger.error(f"Reconciliation failed: {e}")
            return ReconcileOrdersOutput(run_id=run_id, status="FAILED", error=str(e))
        finally:
            store.close()

        run_log.append(completed_run(report, started_at, input.trigger))

        report_ref = None
        if input.export:
            report_ref = export_report(report, artifacts_dir).model_dump(mode="json")
            activity.logger.info(f"Report exported to {report_ref['storage_uri']}")

        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record_run_completed(input.trigger, duration_ms)
        log_activity_complete("reconcile_orders", duration_ms, record_count=report.stats.total)

        stats = report.stats
        return ReconcileOrdersOutput(
            run_id=run_id,
            status="COMPLETED",
            record_count=stats.total,
            matched=stats.matched,
            partial=stats.partial,
            missing_data=stats.missing_data,
            gst_compliant_count=stats.gst_compliant_count,
            audit_ready_count=stats.audit_ready_count,
            snapshot_hash=report.snapshot_hash,
            report_ref=report_ref,
        )
