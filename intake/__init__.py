"""ERP order intake."""

from intake.erp_orders import (
    DuplicateOrderError,
    IntakeResult,
    receive_erp_order,
    validate_erp_order,
)

__all__ = [
    "DuplicateOrderError",
    "IntakeResult",
    "receive_erp_order",
    "validate_erp_order",
]
