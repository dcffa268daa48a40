"""
API Response Models for the Reconciliation Service.

These Pydantic models define the contracts between the HTTP API and its
consumers (dashboard, ERP systems, ops tooling).

Hierarchy:
- ReconciliationStateResponse: records + loading + stats (the consumer contract)
- RunListResponse: audit trail of reconciliation passes
- ExportResponse: reference to an exported report artifact
- IntakeResponse / ErrorResponse: ERP order intake
- HealthResponse: liveness/readiness
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.refs import DataReference, ReconciliationRecord, ReconciliationRun, SummaryCounts


# =============================================================================
# ENUMS
# =============================================================================

class StatusFilter(str, Enum):
    """Dashboard filter on reconciliation status."""
    ALL = "all"
    MATCHED = "matched"
    PARTIAL = "partial"
    MISSING_DATA = "missing_data"


class ComplianceFilter(str, Enum):
    """Dashboard filter on GST compliance."""
    ALL = "all"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"


# =============================================================================
# BASE MODELS
# =============================================================================

class ResponseBase(BaseModel):
    """Base class for all API responses."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# RECONCILIATION MODELS
# =============================================================================

class ReconciliationStateResponse(ResponseBase):
    """Current reconciliation report as seen by the dashboard."""
    records: List[ReconciliationRecord] = Field(default_factory=list)
    loading: bool = Field(..., description="A pass is pending or in flight")
    stats: SummaryCounts = Field(default_factory=SummaryCounts)
    last_error: Optional[str] = Field(None, description="Error from the last failed pass, if any")
    last_refreshed_at: Optional[datetime] = Field(None, description="When the published report was generated")
    run_id: Optional[str] = Field(None, description="Run that produced the published report")


class RunListResponse(ResponseBase):
    """Recent reconciliation runs, newest first."""
    runs: List[ReconciliationRun] = Field(default_factory=list)
    count: int = 0


class ExportResponse(ResponseBase):
    """Exported report artifact."""
    run_id: str
    record_count: int
    artifact: DataReference


# =============================================================================
# ERP INTAKE MODELS
# =============================================================================

class IntakeResponse(ResponseBase):
    """Response to an ERP order submission."""
    success: bool
    message: str
    order_id: Optional[str] = None
    po_number: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ErrorResponse(ResponseBase):
    success: bool = False
    error: str
    details: Optional[str] = None


# =============================================================================
# HEALTH MODELS
# =============================================================================

class HealthResponse(ResponseBase):
    status: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str
    checks: Dict[str, Any] = Field(default_factory=dict)
