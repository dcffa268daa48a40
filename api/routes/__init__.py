"""API Routes Package."""

from api.routes import health, metrics, orders, reconciliation

__all__ = [
    "health",
    "metrics",
    "orders",
    "reconciliation",
]
