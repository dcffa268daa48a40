"""Models Package.

Data models for the reconciliation service including:
- Source record models (orders, dispatch, shipments, invoices, deliveries)
- Reconciliation results, run log entries and artifact references
- API response models
"""

from models.records import (
    DeliveryConfirmation,
    DispatchSchedule,
    Invoice,
    ProcurementOrder,
    Shipment,
)

from models.refs import (
    DataReference,
    ReconciliationRecord,
    ReconciliationReport,
    ReconciliationRun,
    ReconciliationStatus,
    RunStatus,
    SummaryCounts,
)

from models.api_responses import (
    ComplianceFilter,
    ErrorResponse,
    ExportResponse,
    HealthResponse,
    IntakeResponse,
    ReconciliationStateResponse,
    RunListResponse,
    StatusFilter,
)

__all__ = [
    # Source records
    "DeliveryConfirmation",
    "DispatchSchedule",
    "Invoice",
    "ProcurementOrder",
    "Shipment",

    # Results and references
    "DataReference",
    "ReconciliationRecord",
    "ReconciliationReport",
    "ReconciliationRun",
    "ReconciliationStatus",
    "RunStatus",
    "SummaryCounts",

    # API Response models
    "ComplianceFilter",
    "ErrorResponse",
    "ExportResponse",
    "HealthResponse",
    "IntakeResponse",
    "ReconciliationStateResponse",
    "RunListResponse",
    "StatusFilter",
]
