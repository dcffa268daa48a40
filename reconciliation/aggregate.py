"""Summary counts over reconciliation records."""

from typing import Iterable

from models.refs import ReconciliationRecord, ReconciliationStatus, SummaryCounts


def summarize(records: Iterable[ReconciliationRecord]) -> SummaryCounts:
    """Fold records into counts. An empty input gives all zeros."""
    counts = SummaryCounts()
    for record in records:
        counts.total += 1
        if record.status == ReconciliationStatus.MATCHED:
            counts.matched += 1
        elif record.status == ReconciliationStatus.PARTIAL:
            counts.partial += 1
        else:
            counts.missing_data += 1
        if record.gst_compliant:
            counts.gst_compliant_count += 1
        if record.audit_ready:
            counts.audit_ready_count += 1
    return counts
