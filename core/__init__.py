"""Core module - configuration, observability and the reconciliation run log.

Everything here is independent of the record store backend and of the
reconciliation rules themselves.
"""

__version__ = "1.0.0"
