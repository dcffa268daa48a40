"""Workflow definitions module."""

from workflows.reconciliation_workflow import (
    ReconciliationWorkflow,
    ReconciliationWorkflowInput,
    TASK_QUEUE_DEFAULT,
)

__all__ = ["ReconciliationWorkflow", "ReconciliationWorkflowInput", "TASK_QUEUE_DEFAULT"]
