"""Service configuration.

Settings are read from environment variables. A ``.env`` file at the repo
root is loaded first if present.

Usage:
    from core.config import get_settings

    settings = get_settings()
    store = SQLiteRecordStore(settings.database_path)
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


SHIPMENT_SELECTIONS = ("first", "latest_departure")


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class Settings:
    """Resolved service settings.

    Attributes:
        database_path: sqlite file backing the record store and run log
        artifacts_dir: Directory for exported report JSON
        log_level: Logging level name
        log_json: Emit structured JSON logs instead of human-readable lines
        refresh_debounce_seconds: Coalescing window for change-triggered refreshes
        refresh_max_wait_seconds: Longest a change-triggered refresh may be deferred
        unit_rate: Flat price per kg used for invoice amount checks
        amount_tolerance: Allowed invoice amount difference
        date_variance_days: Allowed delivery date drift in whole days
        shipment_selection: Tie-break when a batch has several shipments
        temporal_endpoint: Temporal frontend address (host:port)
        temporal_namespace: Temporal namespace
        temporal_api_key: API key for Temporal Cloud (optional for local dev)
        temporal_cert_path: Client certificate for mTLS (optional)
        task_queue: Task queue polled by the reconciliation worker
    """
    database_path: Path
    artifacts_dir: Path
    log_level: str = "INFO"
    log_json: bool = False
    refresh_debounce_seconds: float = 0.25
    refresh_max_wait_seconds: float = 2.0
    unit_rate: Decimal = Decimal("10")
    amount_tolerance: Decimal = Decimal("100")
    date_variance_days: int = 2
    shipment_selection: str = "first"
    temporal_endpoint: Optional[str] = None
    temporal_namespace: str = "default"
    temporal_api_key: Optional[str] = None
    temporal_cert_path: Optional[str] = None
    task_queue: str = "recon-default"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> Settings:
    """Build Settings from the current environment.

    Raises:
        ConfigError: If a variable is set to an invalid value
    """
    selection = os.getenv("RECON_SHIPMENT_SELECTION", "first").strip().lower()
    if selection not in SHIPMENT_SELECTIONS:
        raise ConfigError(
            f"RECON_SHIPMENT_SELECTION must be one of {SHIPMENT_SELECTIONS}, got {selection!r}"
        )

    return Settings(
        database_path=Path(os.getenv("RECON_DB_PATH", str(REPO_ROOT / "supply_chain.db"))),
        artifacts_dir=Path(os.getenv("RECON_ARTIFACTS_DIR", str(REPO_ROOT / "artifacts"))),
        log_level=os.getenv("RECON_LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("RECON_LOG_JSON", False),
        refresh_debounce_seconds=_env_float("RECON_REFRESH_DEBOUNCE_SECONDS", 0.25),
        refresh_max_wait_seconds=_env_float("RECON_REFRESH_MAX_WAIT_SECONDS", 2.0),
        unit_rate=_env_decimal("RECON_UNIT_RATE", Decimal("10")),
        amount_tolerance=_env_decimal("RECON_AMOUNT_TOLERANCE", Decimal("100")),
        date_variance_days=_env_int("RECON_DATE_VARIANCE_DAYS", 2),
        shipment_selection=selection,
        temporal_endpoint=os.getenv("TEMPORAL_ENDPOINT"),
        temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", "default"),
        temporal_api_key=os.getenv("TEMPORAL_API_KEY"),
        temporal_cert_path=os.getenv("TEMPORAL_CERT_PATH"),
        task_queue=os.getenv("RECON_TASK_QUEUE", "recon-default"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings for the running process."""
    return load_settings()
