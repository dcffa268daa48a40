"""Live reconciliation monitor.

Keeps the reconciliation report current with the record store:
- runs one pass on start ("mount")
- subscribes to change events on the five source tables
- coalesces bursts of change events into a single debounced pass
- cancels an in-flight pass when a newer one is requested
- caps the debounce at max_wait_seconds so a steady stream of writes still
  publishes

Only the most recently requested pass may publish its result, so a slow
stale pass can never overwrite a newer one. A failed pass keeps the previous
records and sets ``last_error``. Nothing is retried automatically.

Usage:
    monitor = ReconciliationMonitor(store, policy, run_log=run_log)
    await monitor.start()
    state = monitor.state()
    state = await monitor.refetch()
    await monitor.stop()
"""

import asyncio
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from core.audit.runs import RunLogBackend, RunLogError, completed_run, failed_run
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from datastore.base import ChangeEvent, RECONCILIATION_TABLES, RecordStore, Subscription
from models.refs import ReconciliationRecord, ReconciliationReport, SummaryCounts
from reconciliation.engine import run_reconciliation
from reconciliation.rules import ReconciliationPolicy


logger = get_logger(__name__)


class ReconciliationMonitor:
    """Coalescing, cancel-and-restart refresher for the reconciliation report.

    All methods except the store callback must be called on the event loop
    the monitor was started on. Store callbacks may arrive on any thread.
    """

    def __init__(
        self,
        store: RecordStore,
        policy: Optional[ReconciliationPolicy] = None,
        run_log: Optional[RunLogBackend] = None,
        debounce_seconds: float = 0.25,
        tables: Sequence[str] = RECONCILIATION_TABLES,
        max_wait_seconds: float = 2.0,
    ):
        self.store = store
        self.policy = policy or ReconciliationPolicy()
        self.run_log = run_log
        self.debounce_seconds = debounce_seconds
        self.max_wait_seconds = max_wait_seconds
        self.tables = tuple(tables)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscriptions: List[Subscription] = []
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._pending_since: Optional[float] = None
        self._executing = False
        self._follow_up: Optional[str] = None

        self._report: Optional[ReconciliationReport] = None
        self._loading = True
        self._last_error: Optional[str] = None
        self._last_refreshed_at: Optional[datetime] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, wait: bool = True) -> None:
        """Subscribe to the source tables and run the initial pass."""
        self._loop = asyncio.get_running_loop()
        for table in self.tables:
            self._subscriptions.append(self.store.subscribe(table, self._on_store_change))
        logger.info(f"Monitoring {len(self.tables)} tables", extra_fields={"tables": list(self.tables)})

        self._schedule("mount", delay=0)
        if wait:
            await self.wait_until_idle()

    async def stop(self) -> None:
        """Unsubscribe and cancel any pending or in-flight pass."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

        task = self._task
        self._task = None
        self._follow_up = None
        self._pending_since = None
        self._executing = False
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Monitor stopped")

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    # =========================================================================
    # Triggers
    # =========================================================================

    def _on_store_change(self, event: ChangeEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.request_refresh, "change", event.table)

    def request_refresh(self, trigger: str = "change", table: Optional[str] = None) -> asyncio.Task:
        """Request a debounced pass, superseding any pending or in-flight one.

        No request waits longer than ``max_wait_seconds`` after the first
        request since the last pass landed. Once that wait is used up, a pass
        that is already executing is left to finish and this request runs
        right after it.
        """
        if self._loop is None:
            raise RuntimeError("Monitor has not been started")

        coalesced = self._task is not None and not self._task.done()
        get_metrics().record_refresh_requested(table, coalesced=coalesced)
        logger.debug(
            "Refresh requested",
            extra_fields={"trigger": trigger, "table": table, "coalesced": coalesced},
        )

        now = self._loop.time()
        if self._pending_since is None:
            self._pending_since = now
        remaining = max(0.0, self._pending_since + self.max_wait_seconds - now)
        if remaining == 0 and self._executing:
            self._follow_up = trigger
            return self._task
        return self._schedule(trigger, delay=min(self.debounce_seconds, remaining))

    async def refetch(self) -> Dict[str, Any]:
        """Run a pass now and return the state once the latest pass has landed."""
        self._schedule("manual", delay=0)
        await self.wait_until_idle()
        return self.state()

    async def wait_until_idle(self) -> None:
        """Wait until the most recently requested pass has finished."""
        while True:
            task = self._task
            if task is None:
                return
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                if task is self._task:
                    return
                continue
            if task is self._task:
                return

    def _schedule(self, trigger: str, delay: float) -> asyncio.Task:
        if self._loop is None:
            raise RuntimeError("Monitor has not been started")

        self._generation += 1
        generation = self._generation
        current = self._task
        if current is not None and not current.done() and current is not asyncio.current_task():
            current.cancel()

        self._executing = False
        self._follow_up = None
        self._loading = True
        self._task = self._loop.create_task(self._run(generation, trigger, delay))
        return self._task

    # =========================================================================
    # Pass Execution
    # =========================================================================

    async def _run(self, generation: int, trigger: str, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        self._executing = True

        metrics = get_metrics()
        run_id = f"recon-{uuid.uuid4().hex[:12]}"
        started_at = datetime.utcnow()
        start = time.perf_counter()
        metrics.record_run_started(trigger)

        with with_correlation(run_id=run_id, trigger=trigger):
            try:
                report = await asyncio.to_thread(run_reconciliation, self.store, self.policy, run_id)
            except asyncio.CancelledError:
                metrics.record_run_superseded()
                logger.debug("Pass superseded by a newer request")
                raise
            except Exception as e:
                if generation != self._generation:
                    metrics.record_run_superseded()
                    return
                metrics.record_run_failed(trigger, str(e))
                self._loading = False
                self._last_error = str(e)
                logger.error(f"Reconciliation pass failed, keeping previous results: {e}", exc_info=True)
                self._append_run(failed_run(run_id, started_at, trigger, str(e)))
                self._landed()
                return

            if generation != self._generation:
                metrics.record_run_superseded()
                return

            self._report = report
            self._last_error = None
            self._last_refreshed_at = report.generated_at
            self._loading = False

            duration_ms = (time.perf_counter() - start) * 1000
            metrics.record_run_completed(trigger, duration_ms)
            self._append_run(completed_run(report, started_at, trigger))
            logger.info(
                f"Published {report.stats.total} records",
                extra_fields={"duration_ms": round(duration_ms, 2)},
            )
            self._landed()

    def _landed(self) -> None:
        """Reset the wait bookkeeping and start any deferred request."""
        self._executing = False
        self._pending_since = None
        trigger, self._follow_up = self._follow_up, None
        if trigger is not None:
            self._schedule(trigger, delay=0)

    def _append_run(self, run) -> None:
        if self.run_log is None:
            return
        try:
            self.run_log.append(run)
        except RunLogError:
            logger.exception(f"Failed to log run {run.run_id}")

    # =========================================================================
    # Consumer Contract
    # =========================================================================

    @property
    def report(self) -> Optional[ReconciliationReport]:
        """Last published report, or None before the first successful pass."""
        return self._report

    @property
    def records(self) -> List[ReconciliationRecord]:
        return list(self._report.records) if self._report else []

    @property
    def stats(self) -> SummaryCounts:
        return self._report.stats if self._report else SummaryCounts()

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def state(self) -> Dict[str, Any]:
        return {
            "records": self.records,
            "loading": self._loading,
            "stats": self.stats,
            "last_error": self._last_error,
            "last_refreshed_at": self._last_refreshed_at,
            "run_id": self._report.run_id if self._report else None,
        }
