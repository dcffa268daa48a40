"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- run_id: Links logs to a single reconciliation pass
- order_id / po_number: Links logs to a specific procurement order
- trigger: What started the pass (mount, change, manual, workflow)
- table: Source collection for change notifications
- workflow_id / activity_name: Links logs to Temporal executions

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(run_id="run-001", trigger="change"):
        logger.info("Fetching snapshot")  # Automatically includes correlation IDs
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional, Dict, Any


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one reconciliation pass."""
    run_id: Optional[str] = None
    order_id: Optional[str] = None
    po_number: Optional[str] = None
    trigger: Optional[str] = None
    table: Optional[str] = None
    workflow_id: Optional[str] = None
    activity_name: Optional[str] = None
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.

    Usage:
        with with_correlation(run_id="run-001", order_id="O1"):
            logger.info("Reconciling")  # Will include run_id and order_id
    """
    old_ctx = get_correlation_context()
    new_ctx = old_ctx.merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2026-01-09T12:00:00.000Z",
        "level": "INFO",
        "logger": "reconciliation.monitor",
        "message": "Refresh completed",
        "run_id": "run-001",
        "trigger": "change",
        "record_count": 42
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = get_correlation_context()
        log_data.update(ctx.to_dict())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes key correlation IDs.

    Output format:
    2026-01-09 12:00:00 [INFO ] reconciliation.monitor [run-001/change]: Refresh completed
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        correlation_parts = []
        if ctx.run_id:
            correlation_parts.append(ctx.run_id[:12])
        if ctx.trigger:
            correlation_parts.append(ctx.trigger)
        if ctx.po_number:
            correlation_parts.append(f"po:{ctx.po_number}")
        elif ctx.order_id:
            correlation_parts.append(f"order:{ctx.order_id}")

        correlation = "/".join(correlation_parts) if correlation_parts else "-"

        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")

        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that automatically includes correlation context.

    Also supports adding extra fields to individual log calls.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra_fields = kwargs.pop("extra_fields", {})
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info,
        )
        record.extra_fields = extra_fields

        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False
_handler: Optional[logging.Handler] = None


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    include_temporal: bool = True,
    force: bool = False,
):
    """
    Configure logging for the application.

    Args:
        level: Logging level (int or level name)
        json_format: If True, use JSON format; otherwise human-readable
        include_temporal: If True, also configure Temporal SDK loggers
        force: Replace a configuration made earlier (e.g. by get_logger defaults)
    """
    global _configured, _handler

    if _configured and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    _handler = handler

    for logger_name in ["reconciliation", "datastore", "intake", "activities", "workflows", "workers", "api", "core"]:
        logging.getLogger(logger_name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    if include_temporal:
        logging.getLogger("temporalio").setLevel(logging.INFO)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        if not _configured:
            configure_logging()

        base_logger = logging.getLogger(name)
        _loggers[name] = CorrelatedLogger(base_logger)

    return _loggers[name]


# =============================================================================
# Convenience Functions
# =============================================================================

def log_stage_complete(stage: str, duration_ms: float = None, **kwargs):
    """Log completion of a pipeline stage with correlation."""
    logger = get_logger(f"reconciliation.{stage}")
    extra = {"duration_ms": round(duration_ms, 2)} if duration_ms is not None else {}
    extra.update(kwargs)
    logger.debug(f"Stage completed: {stage}", extra_fields=extra)


def log_activity_start(activity_name: str, **kwargs):
    """Log activity start with correlation."""
    logger = get_logger(f"activities.{activity_name}")
    logger.info(f"Activity started: {activity_name}", extra_fields=kwargs)


def log_activity_complete(activity_name: str, duration_ms: float = None, **kwargs):
    """Log activity completion with correlation."""
    logger = get_logger(f"activities.{activity_name}")
    extra = {"duration_ms": duration_ms} if duration_ms else {}
    extra.update(kwargs)
    logger.info(f"Activity completed: {activity_name}", extra_fields=extra)
