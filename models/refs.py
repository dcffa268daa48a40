"""Reconciliation result, run log and artifact reference models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from models.records import (
    DeliveryConfirmation,
    DispatchSchedule,
    Invoice,
    ProcurementOrder,
    Shipment,
)


class DataReference(BaseModel):
    """Reference to a stored artifact with metadata for retrieval and verification.

    Attributes:
        storage_uri: Absolute file path to the artifact
        content_hash: SHA256 hash of the content for integrity verification
        content_type: MIME type (e.g., "application/json")
        size_bytes: Size of the artifact in bytes
        stored_at: Timestamp when the artifact was stored
    """
    storage_uri: str = Field(..., description="Absolute file path to the artifact")
    content_hash: str = Field(..., description="SHA256 hash of content")
    content_type: str = Field(default="application/json", description="MIME type")
    size_bytes: int = Field(..., description="Size in bytes")
    stored_at: datetime = Field(default_factory=datetime.utcnow, description="Storage timestamp")


# =============================================================================
# Reconciliation Results
# =============================================================================

class ReconciliationStatus(str, Enum):
    """Per-order reconciliation outcome."""
    MATCHED = "matched"
    PARTIAL = "partial"
    MISSING_DATA = "missing_data"


class ReconciliationRecord(BaseModel):
    """Derived view of one procurement order and its downstream chain.

    Never persisted; recomputed on every pass.
    """
    order: ProcurementOrder
    dispatch: Optional[DispatchSchedule] = None
    shipment: Optional[Shipment] = None
    invoice: Optional[Invoice] = None
    delivery: Optional[DeliveryConfirmation] = None
    status: ReconciliationStatus
    mismatches: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    gst_compliant: bool = False
    audit_ready: bool = False


class SummaryCounts(BaseModel):
    """Counts over a list of reconciliation records."""
    total: int = 0
    matched: int = 0
    partial: int = 0
    missing_data: int = 0
    gst_compliant_count: int = 0
    audit_ready_count: int = 0


class ReconciliationReport(BaseModel):
    """Output of one full reconciliation pass.

    Attributes:
        run_id: Identifier of the pass
        generated_at: When the pass finished
        snapshot_hash: SHA256 over the five fetched collections
        records: One record per procurement order, in fetch order
        stats: Summary counts over ``records``
    """
    run_id: str = Field(..., description="Reconciliation run identifier")
    generated_at: datetime = Field(default_factory=datetime.utcnow, description="Completion time")
    snapshot_hash: str = Field(..., description="Hash of the input snapshot")
    records: List[ReconciliationRecord] = Field(default_factory=list)
    stats: SummaryCounts = Field(default_factory=SummaryCounts)


# =============================================================================
# Run Log
# =============================================================================

class RunStatus(str, Enum):
    """Outcome of a reconciliation run."""
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReconciliationRun(BaseModel):
    """Append-only audit entry for one reconciliation pass."""
    run_id: str = Field(..., description="Reconciliation run identifier")
    started_at: datetime = Field(..., description="When the pass started")
    finished_at: datetime = Field(default_factory=datetime.utcnow, description="When the pass ended")
    trigger: str = Field(default="manual", description="mount, change, manual or workflow")
    status: RunStatus = Field(default=RunStatus.COMPLETED)
    input_snapshot_hash: Optional[str] = Field(None, description="Hash of the input snapshot")
    record_count: int = Field(default=0)
    matched: int = Field(default=0)
    partial: int = Field(default=0)
    missing_data: int = Field(default=0)
    gst_compliant_count: int = Field(default=0)
    audit_ready_count: int = Field(default=0)
    error: Optional[str] = Field(None, description="Failure message for FAILED runs")
