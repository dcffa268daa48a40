"""Reconciliation Workflow for scheduled report runs.

Runs one reconciliation pass on a worker. Intended to be started on a
schedule or on demand (see scripts/start_reconciliation.py).
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.reconcile import (
        reconcile_orders,
        ReconcileOrdersInput,
        ReconcileOrdersOutput,
    )


TASK_QUEUE_DEFAULT = "recon-default"


@dataclass
class ReconciliationWorkflowInput:
    """Input for Reconciliation Workflow.

    Attributes:
        db_path: sqlite database to reconcile (worker settings if omitted)
        export: Export the report JSON as an artifact
        artifacts_dir: Export directory (worker settings if omitted)
    """
    db_path: Optional[str] = None
    export: bool = True
    artifacts_dir: Optional[str] = None


@workflow.defn
class ReconciliationWorkflow:
    """Workflow that runs one reconciliation pass.

    The activity is not retried: a failed pass is recorded in the run log
    and the next scheduled run starts from a fresh snapshot.
    """

    @workflow.run
    async def run(self, input: ReconciliationWorkflowInput) -> ReconcileOrdersOutput:
        workflow.logger.info(f"Starting reconciliation workflow {workflow.info().workflow_id}")

        result = await workflow.execute_activity(
            reconcile_orders,
            ReconcileOrdersInput(
                db_path=input.db_path,
                export=input.export,
                artifacts_dir=input.artifacts_dir,
                trigger="workflow",
                run_id=f"recon-{workflow.info().run_id}",
            ),
            start_to_close_timeout=timedelta(minutes=2),
            retry_policy=RetryPolicy(maximum_attempts=1),
        )

        workflow.logger.info(
            f"Reconciliation {result.status}: {result.record_count} orders, "
            f"{result.matched} matched, {result.partial} partial, {result.missing_data} missing data"
        )
        return result
