"""
Run one reconciliation pass over the supply-chain database.

For every ERP procurement order, checks the chain
order -> dispatch -> shipment -> invoice -> delivery and prints the
status, mismatches and suggested fixes.

Usage:
    python scripts/reconcile.py --seed
    python scripts/reconcile.py --db ./supply_chain.db --status partial
    python scripts/reconcile.py --export --json
"""

import argparse
import json
import sys
import uuid
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.audit.runs import SQLiteRunLog, completed_run, failed_run
from core.config import get_settings
from core.observability.logging import configure_logging
from datastore.base import DuplicateRecordError
from datastore.seed import seed_sample_data
from datastore.sqlite_store import SQLiteRecordStore
from models.refs import ReconciliationReport, ReconciliationStatus
from reconciliation.engine import run_reconciliation
from reconciliation.fetch import FetchError
from reconciliation.rules import ReconciliationPolicy
from storage.artifacts import export_report


STATUS_EMOJI = {
    ReconciliationStatus.MATCHED: "✅",
    ReconciliationStatus.PARTIAL: "⚠️",
    ReconciliationStatus.MISSING_DATA: "❌",
}


def print_report(report: ReconciliationReport, status_filter: str = "all") -> None:
    """Print reconciliation results in a readable format."""
    stats = report.stats
    print("=" * 60)
    print(f"RECONCILIATION {report.run_id}")
    print("=" * 60)
    print(f"Orders:         {stats.total}")
    print(f"Matched:        {stats.matched}")
    print(f"Partial:        {stats.partial}")
    print(f"Missing data:   {stats.missing_data}")
    print(f"GST compliant:  {stats.gst_compliant_count}")
    print(f"Audit ready:    {stats.audit_ready_count}")
    print(f"Snapshot:       {report.snapshot_hash[:16]}")

    for record in report.records:
        if status_filter != "all" and record.status.value != status_filter:
            continue
        order = record.order
        print(f"\n{STATUS_EMOJI.get(record.status, '')} {order.po_number or order.id} [{record.status.value}]")
        print(f"  GST compliant: {'yes' if record.gst_compliant else 'no'}   "
              f"Audit ready: {'yes' if record.audit_ready else 'no'}")
        for mismatch, suggestion in zip(record.mismatches, record.suggestions):
            print(f"  - {mismatch}")
            print(f"      -> {suggestion}")


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Reconcile ERP orders against warehouse, shipment and invoice records")
    parser.add_argument("--db", type=Path, default=settings.database_path, help="sqlite database path")
    parser.add_argument("--seed", action="store_true", help="Load the sample scenarios before reconciling")
    parser.add_argument("--export", action="store_true", help="Write the report JSON to the artifacts directory")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument(
        "--status",
        choices=["all"] + [s.value for s in ReconciliationStatus],
        default="all",
        help="Only print orders with this status",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level, json_format=settings.log_json, force=True)

    store = SQLiteRecordStore(args.db)
    run_log = SQLiteRunLog(args.db)

    if args.seed:
        try:
            seed_sample_data(store)
        except DuplicateRecordError:
            print("Sample data already loaded", file=sys.stderr)

    run_id = f"recon-{uuid.uuid4().hex[:12]}"
    started_at = datetime.utcnow()
    try:
        report = run_reconciliation(store, ReconciliationPolicy.from_settings(settings), run_id)
    except FetchError as e:
        run_log.append(failed_run(run_id, started_at, "manual", str(e)))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    run_log.append(completed_run(report, started_at, "manual"))

    if args.json:
        print(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        print_report(report, args.status)

    if args.export:
        ref = export_report(report, settings.artifacts_dir)
        print(f"\nReport written to {ref.storage_uri}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
