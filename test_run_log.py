"""
Run Log and Artifact Tests

Validates the append-only reconciliation run log (sqlite and in-memory
backends) and hash-verified report export.
"""

import json
import sqlite3
from datetime import datetime, timedelta

import pytest

from core.audit.runs import InMemoryRunLog, RunLogError, SQLiteRunLog, completed_run, failed_run
from datastore.memory import InMemoryRecordStore
from datastore.seed import seed_sample_data
from models.refs import RunStatus
from reconciliation.engine import run_reconciliation
from storage.artifacts import export_report, get_json, put_json


@pytest.fixture
def report():
    store = InMemoryRecordStore()
    seed_sample_data(store)
    return run_reconciliation(store, run_id="recon-fixture")


@pytest.fixture(params=["sqlite", "memory"])
def run_log(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRunLog(tmp_path / "runs.db")
    return InMemoryRunLog()


class TestRunEntries:

    def test_completed_run_copies_report_counts(self, report):
        started_at = datetime.utcnow() - timedelta(seconds=1)
        run = completed_run(report, started_at, "mount")

        assert run.run_id == "recon-fixture"
        assert run.status == RunStatus.COMPLETED
        assert run.trigger == "mount"
        assert run.input_snapshot_hash == report.snapshot_hash
        assert run.record_count == 4
        assert (run.matched, run.partial, run.missing_data) == (1, 2, 1)
        assert run.finished_at == report.generated_at
        assert run.error is None

    def test_failed_run(self):
        run = failed_run("recon-x", datetime.utcnow(), "change", "Failed to fetch shipments: boom")
        assert run.status == RunStatus.FAILED
        assert run.record_count == 0
        assert run.input_snapshot_hash is None
        assert "boom" in run.error


class TestRunLogBackends:

    def test_append_and_get(self, run_log, report):
        run_log.append(completed_run(report, datetime.utcnow(), "manual"))
        stored = run_log.get_run("recon-fixture")

        assert stored.status == RunStatus.COMPLETED
        assert stored.record_count == 4
        assert stored.input_snapshot_hash == report.snapshot_hash

    def test_get_unknown_run(self, run_log):
        assert run_log.get_run("nope") is None

    def test_runs_are_never_overwritten(self, run_log, report):
        run_log.append(completed_run(report, datetime.utcnow(), "manual"))
        with pytest.raises(RunLogError):
            run_log.append(failed_run("recon-fixture", datetime.utcnow(), "manual", "late failure"))
        assert run_log.get_run("recon-fixture").status == RunStatus.COMPLETED

    def test_newest_first_with_limit_and_trigger(self, run_log):
        now = datetime.utcnow()
        for i, trigger in enumerate(["mount", "change", "change", "manual"]):
            run = failed_run(f"recon-{i}", now, trigger, "x")
            run_log.append(run.model_copy(update={"finished_at": now + timedelta(seconds=i)}))

        assert [r.run_id for r in run_log.list_runs()] == ["recon-3", "recon-2", "recon-1", "recon-0"]
        assert [r.run_id for r in run_log.list_runs(limit=2)] == ["recon-3", "recon-2"]
        assert [r.run_id for r in run_log.list_runs(trigger="change")] == ["recon-2", "recon-1"]

    def test_sqlite_log_survives_reopen(self, tmp_path, report):
        SQLiteRunLog(tmp_path / "runs.db").append(completed_run(report, datetime.utcnow(), "workflow"))
        reopened = SQLiteRunLog(tmp_path / "runs.db")
        assert reopened.get_run("recon-fixture").trigger == "workflow"

    def test_sqlite_read_errors_become_run_log_errors(self, tmp_path):
        run_log = SQLiteRunLog(tmp_path / "runs.db")
        conn = sqlite3.connect(str(tmp_path / "runs.db"))
        conn.execute("DROP TABLE reconciliation_runs")
        conn.commit()
        conn.close()

        with pytest.raises(RunLogError):
            run_log.list_runs()
        with pytest.raises(RunLogError):
            run_log.get_run("recon-fixture")


class TestReportExport:

    def test_export_writes_verifiable_json(self, tmp_path, report):
        ref = export_report(report, tmp_path)

        assert ref.storage_uri.endswith("reports/recon-fixture.json")
        assert ref.size_bytes > 0

        data = get_json(ref)
        assert data["run_id"] == "recon-fixture"
        assert data["stats"]["total"] == 4
        assert [r["order"]["id"] for r in data["records"]] == ["O4", "O3", "O2", "O1"]
        assert data["records"][3]["invoice"]["amount"] == 1000

    def test_tampered_artifact_fails_hash_check(self, tmp_path):
        ref = put_json({"a": 1}, tmp_path / "x.json")
        (tmp_path / "x.json").write_text(json.dumps({"a": 2}))

        with pytest.raises(ValueError):
            get_json(ref)
        assert get_json(ref, validate_hash=False) == {"a": 2}

    def test_missing_artifact(self, tmp_path):
        ref = put_json([1, 2], tmp_path / "gone.json")
        (tmp_path / "gone.json").unlink()
        with pytest.raises(FileNotFoundError):
            get_json(ref)
