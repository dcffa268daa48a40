"""Start a reconciliation workflow on Temporal.

This script connects to Temporal, starts a ReconciliationWorkflow on the
configured task queue, and prints the run summary.
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.reconciliation_workflow import ReconciliationWorkflow, ReconciliationWorkflowInput


logger = get_logger("scripts.start_reconciliation")


async def start_reconciliation_workflow(db_path: str = None, export: bool = True):
    """Start a reconciliation workflow and wait for its result.

    Returns:
        ReconcileOrdersOutput from the workflow

    Raises:
        Exception: If workflow execution fails
    """
    settings = get_settings()
    client = await get_temporal_client(settings)
    logger.info(f"Connected to Temporal: {client.namespace}")

    workflow_id = f"reconciliation-{uuid.uuid4().hex[:12]}"
    logger.info(f"Starting ReconciliationWorkflow on task queue '{settings.task_queue}'...")
    handle = await client.start_workflow(
        ReconciliationWorkflow.run,
        ReconciliationWorkflowInput(db_path=db_path, export=export),
        id=workflow_id,
        task_queue=settings.task_queue,
    )

    logger.info(f"Workflow started: {handle.id}")
    logger.info("Waiting for result...")
    return await handle.result()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Start a reconciliation workflow")
    parser.add_argument("--db", help="sqlite database path as seen by the worker")
    parser.add_argument("--no-export", action="store_true", help="Skip writing the report artifact")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json, force=True)

    try:
        result = asyncio.run(start_reconciliation_workflow(args.db, export=not args.no_export))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{result.status}: {result.record_count} orders "
          f"({result.matched} matched, {result.partial} partial, {result.missing_data} missing data)")
    if result.report_ref:
        print(f"Report: {result.report_ref['storage_uri']}")
    return 0 if result.status == "COMPLETED" else 1


if __name__ == "__main__":
    sys.exit(main())
