"""Activity definitions module."""

from activities.reconcile import (
    reconcile_orders,
    ReconcileOrdersInput,
    ReconcileOrdersOutput,
)

__all__ = [
    "reconcile_orders",
    "ReconcileOrdersInput",
    "ReconcileOrdersOutput",
]
