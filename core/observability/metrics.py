"""
Metrics Collection for the Reconciliation Service

Collects and exposes metrics for:
- Reconciliation runs (started, completed, failed, superseded)
- Refresh requests (received, coalesced into a pending run)
- ERP order intake (accepted, rejected, duplicate)
- Processing times per pipeline stage (average, p95)

Metrics are held in memory for the lifetime of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class RunMetrics:
    """Metrics for reconciliation runs."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    superseded: int = 0
    in_progress: int = 0
    last_completed_at: Optional[datetime] = None

    # By trigger (mount, change, manual, workflow)
    by_trigger: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0})
    )


@dataclass
class RefreshMetrics:
    """Metrics for change-driven refresh requests."""
    requested: int = 0
    coalesced: int = 0
    by_table: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class IntakeMetrics:
    """Metrics for ERP order intake."""
    accepted: int = 0
    rejected: int = 0
    duplicate: int = 0


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the reconciliation service.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_run_started("change")
        metrics.record_processing_time("fetch", 12.5)
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.runs = RunMetrics()
        self.refresh = RefreshMetrics()
        self.intake = IntakeMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Run Metrics
    # =========================================================================

    def record_run_started(self, trigger: str):
        with self._lock:
            self.runs.started += 1
            self.runs.in_progress += 1
            self.runs.by_trigger[trigger]["started"] += 1

    def record_run_completed(self, trigger: str, duration_ms: float = None):
        with self._lock:
            self.runs.completed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_trigger[trigger]["completed"] += 1
            self.runs.last_completed_at = datetime.utcnow()

            if duration_ms is not None:
                self.timings.add_sample(duration_ms, "run")

    def record_run_failed(self, trigger: str, error: str = None):
        with self._lock:
            self.runs.failed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_trigger[trigger]["failed"] += 1

    def record_run_superseded(self):
        """A run was cancelled or discarded because a newer one was requested."""
        with self._lock:
            self.runs.superseded += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)

    # =========================================================================
    # Refresh Metrics
    # =========================================================================

    def record_refresh_requested(self, table: str = None, coalesced: bool = False):
        with self._lock:
            self.refresh.requested += 1
            if coalesced:
                self.refresh.coalesced += 1
            if table:
                self.refresh.by_table[table] += 1

    # =========================================================================
    # Intake Metrics
    # =========================================================================

    def record_order_accepted(self):
        with self._lock:
            self.intake.accepted += 1

    def record_order_rejected(self):
        with self._lock:
            self.intake.rejected += 1

    def record_order_duplicate(self):
        with self._lock:
            self.intake.duplicate += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            last_completed = self.runs.last_completed_at
            return {
                "runs": {
                    "started": self.runs.started,
                    "completed": self.runs.completed,
                    "failed": self.runs.failed,
                    "superseded": self.runs.superseded,
                    "in_progress": self.runs.in_progress,
                    "last_completed_at": last_completed.isoformat() if last_completed else None,
                    "by_trigger": {k: dict(v) for k, v in self.runs.by_trigger.items()},
                },
                "refresh": {
                    "requested": self.refresh.requested,
                    "coalesced": self.refresh.coalesced,
                    "by_table": dict(self.refresh.by_table),
                },
                "intake": {
                    "accepted": self.intake.accepted,
                    "rejected": self.intake.rejected,
                    "duplicate": self.intake.duplicate,
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_run_started(trigger: str):
    get_metrics().record_run_started(trigger)


def record_run_completed(trigger: str, duration_ms: float = None):
    get_metrics().record_run_completed(trigger, duration_ms)


def record_run_failed(trigger: str, error: str = None):
    get_metrics().record_run_failed(trigger, error)


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
