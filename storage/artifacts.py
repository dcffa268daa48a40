"""JSON artifact storage for exported reconciliation reports.

Each artifact is written once and returned as a DataReference carrying its
SHA256, so a later read can verify the file was not altered.
"""

import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from models.refs import DataReference, ReconciliationReport


def _compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def put_json(obj: Any, path: Path, ensure_parent: bool = True) -> DataReference:
    """Store a JSON-serializable object and return a DataReference.

    Args:
        obj: Pydantic model or JSON-serializable object
        path: File path where the artifact will be stored
        ensure_parent: Create parent directories if they don't exist

    Returns:
        DataReference with artifact metadata for retrieval

    Raises:
        TypeError: If the object is not JSON-serializable
    """
    path = Path(path)
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)

    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(mode="json")

    json_bytes = json.dumps(obj, indent=2, sort_keys=True).encode("utf-8")
    path.write_bytes(json_bytes)

    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(json_bytes),
        content_type="application/json",
        size_bytes=len(json_bytes),
        stored_at=datetime.utcnow(),
    )


def get_json(ref: DataReference, validate_hash: bool = True) -> Any:
    """Read a JSON artifact back from its DataReference.

    Raises:
        FileNotFoundError: If the artifact path doesn't exist
        ValueError: If hash validation fails
    """
    path = Path(ref.storage_uri)
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {ref.storage_uri}")

    json_bytes = path.read_bytes()
    if validate_hash:
        actual_hash = _compute_sha256(json_bytes)
        if actual_hash != ref.content_hash:
            raise ValueError(
                f"Hash mismatch for {ref.storage_uri}: "
                f"expected {ref.content_hash}, got {actual_hash}"
            )

    return json.loads(json_bytes.decode("utf-8"))


def export_report(report: ReconciliationReport, artifacts_dir: Path) -> DataReference:
    """Write a reconciliation report to ``<artifacts_dir>/reports/<run_id>.json``."""
    return put_json(report, Path(artifacts_dir) / "reports" / f"{report.run_id}.json")
