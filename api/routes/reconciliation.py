"""Reconciliation endpoints.

Serves the live reconciliation report kept by the monitor, its run history
and report export.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from core.audit.runs import RunLogError
from core.observability.logging import get_logger
from models.api_responses import (
    ComplianceFilter,
    ExportResponse,
    ReconciliationStateResponse,
    RunListResponse,
    StatusFilter,
)
from models.refs import SummaryCounts
from reconciliation.monitor import ReconciliationMonitor
from storage.artifacts import export_report


router = APIRouter()
logger = get_logger(__name__)


def _monitor(request: Request) -> ReconciliationMonitor:
    monitor = request.app.state.monitor
    if monitor is None:
        raise HTTPException(status_code=503, detail="Reconciliation monitor is not running")
    return monitor


def _filtered_state(state: dict, status: StatusFilter, compliance: ComplianceFilter) -> ReconciliationStateResponse:
    records = state["records"]
    if status != StatusFilter.ALL:
        records = [r for r in records if r.status.value == status.value]
    if compliance == ComplianceFilter.COMPLIANT:
        records = [r for r in records if r.gst_compliant]
    elif compliance == ComplianceFilter.NON_COMPLIANT:
        records = [r for r in records if not r.gst_compliant]
    return ReconciliationStateResponse(**{**state, "records": records})


@router.get("", response_model=ReconciliationStateResponse)
async def get_reconciliation(
    request: Request,
    status: StatusFilter = Query(StatusFilter.ALL, description="Filter on reconciliation status"),
    compliance: ComplianceFilter = Query(ComplianceFilter.ALL, description="Filter on GST compliance"),
) -> ReconciliationStateResponse:
    """Current reconciliation records, loading flag and summary counts.

    Stats always cover the full report, not the filtered records.
    """
    return _filtered_state(_monitor(request).state(), status, compliance)


@router.get("/stats", response_model=SummaryCounts)
async def get_stats(request: Request) -> SummaryCounts:
    """Summary counts of the published report."""
    return _monitor(request).stats


@router.post("/refresh", response_model=ReconciliationStateResponse)
async def refresh(request: Request) -> ReconciliationStateResponse:
    """Run a pass now and return the state once it has landed."""
    state = await _monitor(request).refetch()
    return ReconciliationStateResponse(**state)


@router.get("/runs", response_model=RunListResponse)
async def list_runs(
    request: Request,
    limit: int = Query(20, ge=1, le=200),
    trigger: Optional[str] = Query(None, description="Only runs started by this trigger"),
) -> RunListResponse:
    """Recent reconciliation runs, newest first."""
    run_log = request.app.state.run_log
    try:
        runs = run_log.list_runs(limit=limit, trigger=trigger) if run_log is not None else []
    except RunLogError as e:
        logger.error(f"Run history unavailable: {e}")
        raise HTTPException(status_code=503, detail="Run history is unavailable") from e
    return RunListResponse(runs=runs, count=len(runs))


@router.post("/export", response_model=ExportResponse)
async def export(request: Request) -> ExportResponse:
    """Write the published report as a JSON artifact."""
    report = _monitor(request).report
    if report is None:
        raise HTTPException(status_code=409, detail="No reconciliation report has been published yet")

    ref = export_report(report, request.app.state.settings.artifacts_dir)
    return ExportResponse(run_id=report.run_id, record_count=report.stats.total, artifact=ref)
