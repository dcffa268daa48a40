"""Worker for scheduled reconciliation runs.

Connects to Temporal, listens on the reconciliation task queue and executes
the reconciliation workflow and activity.

Run with --queue <name> to override the task queue from settings.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.reconciliation_workflow import ReconciliationWorkflow
from activities.reconcile import reconcile_orders


logger = get_logger("workers.worker")

WORKFLOWS = [ReconciliationWorkflow]
ACTIVITIES = [reconcile_orders]


async def run_worker(queue: str = None):
    """Start a worker polling the reconciliation task queue.

    Args:
        queue: Task queue to poll (settings.task_queue if omitted)

    Raises:
        Exception: If connection to Temporal fails
    """
    settings = get_settings()
    task_queue = queue or settings.task_queue
    client = await get_temporal_client(settings)
    logger.info(f"Connected to Temporal: {client.namespace}")

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )
    logger.info(
        f"Worker created for queue '{task_queue}'",
        extra_fields={"workflows": len(WORKFLOWS), "activities": len(ACTIVITIES)},
    )

    logger.info("Worker running... (Ctrl+C to stop)")
    await worker.run()


def main():
    """Entry point for worker with CLI args."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Reconciliation Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=settings.task_queue,
        help=f"Task queue to poll (default: {settings.task_queue})",
    )
    args = parser.parse_args()

    configure_logging(settings.log_level, json_format=settings.log_json, force=True)
    try:
        asyncio.run(run_worker(queue=args.queue))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")


if __name__ == "__main__":
    main()
