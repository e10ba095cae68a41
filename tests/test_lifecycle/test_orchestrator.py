"""Tests for the lifecycle orchestrator against a SQLite-backed store."""

import sqlite3
import threading
import time

import pytest

from luxe_crm.database.models import Job, LineItem
from luxe_crm.lifecycle.errors import (
    AllocationFailure,
    PersistFailure,
    SourceNotFound,
)
from luxe_crm.lifecycle.orchestrator import (
    APPLIED,
    CREATED,
    FAILED,
    SKIPPED,
    TRANSITIONS,
    LifecycleOrchestrator,
    Transition,
)


@pytest.fixture
def orchestrator(repo, clock):
    return LifecycleOrchestrator(repo, allocator=repo.allocator, clock=clock)


def _accept(repo, orchestrator, estimate_id, previous="Sent"):
    repo.update("estimate", estimate_id, {"status": "Accepted"})
    return orchestrator.on_status_change(
        "estimate", estimate_id, previous, "Accepted",
    )


def _complete(repo, orchestrator, job_id, previous="In Progress"):
    repo.update("job", job_id, {"status": "Completed"})
    return orchestrator.on_status_change("job", job_id, previous, "Completed")


class TestTransitionTable:
    def test_matches_only_on_entry(self):
        t = Transition("estimate", "Accepted", "derive_job_from_estimate")
        assert t.matches("estimate", "Sent", "Accepted")
        assert not t.matches("estimate", "Accepted", "Accepted")
        assert not t.matches("job", "Sent", "Accepted")
        assert not t.matches("estimate", "Draft", "Sent")

    def test_completion_stamp_runs_before_invoice(self):
        job_actions = [t.action for t in TRANSITIONS if t.kind == "job"]
        assert job_actions == ["stamp_completion_date", "derive_invoice_from_job"]

    def test_unrelated_change_does_nothing(self, repo, orchestrator,
                                           make_estimate):
        eid = make_estimate(status="Draft")
        outcome = orchestrator.on_status_change("estimate", eid, "Draft", "Sent")
        assert outcome.results == []
        assert outcome.ok
        assert repo.get_all_jobs() == []

    def test_invoice_changes_do_nothing(self, orchestrator):
        outcome = orchestrator.on_status_change("invoice", 1, "Draft", "Paid")
        assert outcome.results == []


class TestEstimateAccepted:
    def test_derives_job(self, repo, orchestrator, make_estimate):
        eid = make_estimate()
        outcome = _accept(repo, orchestrator, eid)

        assert outcome.ok
        [result] = outcome.created
        assert result.derived_kind == "job"
        assert result.reference_number == "JOB-20240715-001"

        job = repo.get_job_by_id(result.derived_id)
        assert job.job_number == "JOB-20240715-001"
        assert job.estimate_id == eid
        assert job.status == "Pending Schedule"
        assert job.description == "A, B"
        assert job.customer_name == "Harbor View Condos"
        assert repo.get_estimate_by_id(eid).job_created == 1

    def test_reaccept_does_not_derive_again(self, repo, orchestrator,
                                            make_estimate):
        eid = make_estimate()
        _accept(repo, orchestrator, eid)
        repo.update("estimate", eid, {"status": "Sent"})
        outcome = _accept(repo, orchestrator, eid)

        assert [r.state for r in outcome.results] == [SKIPPED]
        assert outcome.ok
        assert len(repo.get_jobs_for_estimate(eid)) == 1

    def test_resave_while_accepted_is_noop(self, repo, orchestrator,
                                           make_estimate):
        eid = make_estimate()
        _accept(repo, orchestrator, eid)
        outcome = orchestrator.on_status_change(
            "estimate", eid, "Accepted", "Accepted",
        )
        assert outcome.results == []
        assert len(repo.get_all_jobs()) == 1

    def test_notes_become_description(self, repo, orchestrator,
                                      make_estimate):
        eid = make_estimate(notes="Back gate code 4411")
        result = _accept(repo, orchestrator, eid).created[0]
        assert repo.get_job_by_id(result.derived_id).description == (
            "Back gate code 4411"
        )

    def test_priced_estimate_example(self, repo, orchestrator,
                                     make_estimate):
        eid = make_estimate(items=[
            LineItem(description="A", quantity=2, unit_price=50.0),
            LineItem(description="B", quantity=1, unit_price=30.0),
        ], tax_rate=0.08)
        assert repo.get_estimate_by_id(eid).total_amount == pytest.approx(140.4)
        job = repo.get_job_by_id(
            _accept(repo, orchestrator, eid).created[0].derived_id
        )
        assert job.status == "Pending Schedule"
        assert job.completion_date is None
        assert "A" in job.description

    def test_missing_estimate(self, orchestrator):
        outcome = orchestrator.on_status_change("estimate", 404, "Sent", "Accepted")
        [result] = outcome.results
        assert result.state == FAILED
        assert isinstance(result.error, SourceNotFound)
        assert not outcome.ok


class TestJobCompleted:
    @pytest.fixture
    def job_id(self, repo, orchestrator, make_estimate):
        eid = make_estimate()
        return _accept(repo, orchestrator, eid).created[0].derived_id

    def test_stamps_completion_and_derives_invoice(self, repo, orchestrator,
                                                   clock, job_id):
        clock.advance(days=5)
        outcome = _complete(repo, orchestrator, job_id)

        assert [r.state for r in outcome.results] == [APPLIED, CREATED]
        job = repo.get_job_by_id(job_id)
        assert job.completion_date == "2024-07-20 10:30:00"
        assert job.invoice_created == 1

        invoice = repo.get_invoice_by_id(outcome.created[0].derived_id)
        assert invoice.invoice_number == "INV-20240720-001"
        assert invoice.job_id == job_id
        assert invoice.estimate_id == job.estimate_id
        assert invoice.status == "Draft"
        assert invoice.tax_rate == 0.08
        assert invoice.subtotal == pytest.approx(25.0)
        assert invoice.total_amount == pytest.approx(27.0)
        assert invoice.due_date == "2024-08-19 10:30:00"
        assert [i.description for i in invoice.line_item_list] == ["A", "B"]

    def test_invoice_items_get_new_ids(self, repo, orchestrator, job_id):
        outcome = _complete(repo, orchestrator, job_id)
        invoice = repo.get_invoice_by_id(outcome.created[0].derived_id)
        assert not {"a", "b"} & {i.id for i in invoice.line_item_list}

    def test_recompletion_keeps_date_and_invoice(self, repo, orchestrator,
                                                 clock, job_id):
        _complete(repo, orchestrator, job_id)
        repo.update("job", job_id, {"status": "Requires Follow-up"})
        clock.advance(days=3)
        outcome = _complete(repo, orchestrator, job_id,
                            previous="Requires Follow-up")

        assert [r.state for r in outcome.results] == [SKIPPED, SKIPPED]
        assert repo.get_job_by_id(job_id).completion_date == "2024-07-15 10:30:00"
        assert len(repo.get_invoices_for_job(job_id)) == 1

    def test_job_without_estimate_gets_placeholder(self, repo, orchestrator):
        jid = repo.create_job(Job(description="Emergency pipe repair"))
        outcome = _complete(repo, orchestrator, jid)
        invoice = repo.get_invoice_by_id(outcome.created[0].derived_id)
        [item] = invoice.line_item_list
        assert item.description == "Emergency pipe repair"
        assert item.unit_price == 0.0
        assert invoice.total_amount == 0.0
        assert invoice.estimate_id is None

    def test_deleted_estimate_falls_back_to_placeholder(self, repo,
                                                        orchestrator,
                                                        job_id):
        job = repo.get_job_by_id(job_id)
        # Simulate a dangling link left by an older database
        with repo.db.get_connection() as conn:
            conn.execute("PRAGMA foreign_keys = OFF")
            conn.execute("DELETE FROM estimates WHERE id = ?",
                         (job.estimate_id,))
        outcome = _complete(repo, orchestrator, job_id)
        assert outcome.ok
        invoice = repo.get_invoice_by_id(outcome.created[0].derived_id)
        assert invoice.total_amount == 0.0
        assert invoice.estimate_id is None


class TestFailures:
    def test_allocation_failure_leaves_flag_clear(self, repo, orchestrator,
                                                  make_estimate, monkeypatch):
        eid = make_estimate()

        def broken_count(kind, since):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(repo, "count_created_since", broken_count)
        outcome = _accept(repo, orchestrator, eid)

        [result] = outcome.failures
        assert isinstance(result.error, AllocationFailure)
        assert repo.get_all_jobs() == []
        assert repo.get_estimate_by_id(eid).job_created == 0

    def test_create_failure_leaves_flag_clear(self, repo, orchestrator,
                                              make_estimate, monkeypatch):
        eid = make_estimate()
        real_create = repo.create

        def failing_create(kind, fields):
            if kind == "job":
                raise sqlite3.OperationalError("disk I/O error")
            return real_create(kind, fields)

        monkeypatch.setattr(repo, "create", failing_create)
        outcome = _accept(repo, orchestrator, eid)

        [result] = outcome.failures
        assert isinstance(result.error, PersistFailure)
        assert result.derived_id is None
        assert repo.get_estimate_by_id(eid).job_created == 0

    def test_retry_after_failure_succeeds(self, repo, orchestrator,
                                          make_estimate, monkeypatch):
        eid = make_estimate()
        real_create = repo.create

        def failing_create(kind, fields):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(repo, "create", failing_create)
        assert not _accept(repo, orchestrator, eid).ok

        monkeypatch.setattr(repo, "create", real_create)
        repo.update("estimate", eid, {"status": "Sent"})
        outcome = _accept(repo, orchestrator, eid)
        assert len(outcome.created) == 1
        assert len(repo.get_jobs_for_estimate(eid)) == 1

    def test_flag_write_failure_reports_created_document(self, repo,
                                                         orchestrator,
                                                         make_estimate,
                                                         monkeypatch):
        eid = make_estimate()
        real_update = repo.update

        def failing_update(kind, doc_id, fields):
            if "job_created" in fields:
                raise sqlite3.OperationalError("database is locked")
            return real_update(kind, doc_id, fields)

        monkeypatch.setattr(repo, "update", failing_update)
        outcome = _accept(repo, orchestrator, eid)

        [result] = outcome.failures
        assert isinstance(result.error, PersistFailure)
        assert result.derived_kind == "job"
        assert result.reference_number == "JOB-20240715-001"
        assert repo.get_job_by_id(result.derived_id) is not None
        assert repo.get_estimate_by_id(eid).job_created == 0

    def test_flag_write_failure_derives_again(self, repo, orchestrator,
                                              make_estimate, monkeypatch):
        eid = make_estimate()
        real_update = repo.update

        def failing_update(kind, doc_id, fields):
            if "job_created" in fields:
                raise sqlite3.OperationalError("database is locked")
            return real_update(kind, doc_id, fields)

        monkeypatch.setattr(repo, "update", failing_update)
        _accept(repo, orchestrator, eid)
        monkeypatch.setattr(repo, "update", real_update)
        repo.update("estimate", eid, {"status": "Sent"})
        _accept(repo, orchestrator, eid)

        numbers = [j.job_number for j in repo.get_jobs_for_estimate(eid)]
        assert numbers == ["JOB-20240715-001", "JOB-20240715-002"]

    def test_read_failure(self, repo, orchestrator, monkeypatch):
        def broken_get(kind, doc_id):
            raise sqlite3.OperationalError("no such table")

        monkeypatch.setattr(repo, "get", broken_get)
        outcome = orchestrator.on_status_change("job", 1, "Scheduled", "Completed")
        [result] = outcome.results
        assert result.action == "load"
        assert isinstance(result.error, PersistFailure)

    def test_completion_stamp_failure_does_not_block_invoice(
            self, repo, orchestrator, monkeypatch):
        jid = repo.create_job(Job(description="Emergency pipe repair"))
        real_update = repo.update

        def failing_update(kind, doc_id, fields):
            if "completion_date" in fields:
                raise sqlite3.OperationalError("database is locked")
            return real_update(kind, doc_id, fields)

        monkeypatch.setattr(repo, "update", failing_update)
        outcome = _complete(repo, orchestrator, jid)
        assert [r.state for r in outcome.results] == [FAILED, CREATED]
        assert repo.get_job_by_id(jid).invoice_created == 1


class TestConcurrentTransitions:
    def _slow_counts(self, repo, monkeypatch):
        real_count = repo.count_created_since

        def slow_count(kind, since):
            count = real_count(kind, since)
            time.sleep(0.05)
            return count

        monkeypatch.setattr(repo, "count_created_since", slow_count)

    def _run_together(self, target, times=2):
        outcomes = []
        threads = [
            threading.Thread(target=lambda: outcomes.append(target()))
            for _ in range(times)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return outcomes

    def test_simultaneous_accepts_derive_one_job(self, repo, orchestrator,
                                                 make_estimate, monkeypatch):
        eid = make_estimate()
        repo.update("estimate", eid, {"status": "Accepted"})
        self._slow_counts(repo, monkeypatch)

        outcomes = self._run_together(lambda: orchestrator.on_status_change(
            "estimate", eid, "Sent", "Accepted",
        ))

        states = sorted(o.results[0].state for o in outcomes)
        assert states == [CREATED, SKIPPED]
        assert len(repo.get_jobs_for_estimate(eid)) == 1

    def test_simultaneous_completions_derive_one_invoice(self, repo,
                                                         orchestrator,
                                                         monkeypatch):
        jid = repo.create_job(Job(description="Emergency pipe repair"))
        repo.update("job", jid, {"status": "Completed"})
        self._slow_counts(repo, monkeypatch)

        self._run_together(lambda: orchestrator.on_status_change(
            "job", jid, "In Progress", "Completed",
        ))
        assert len(repo.get_invoices_for_job(jid)) == 1

    def test_default_allocator_shares_repository_lock(self, repo, clock,
                                                      make_estimate,
                                                      monkeypatch):
        eid = make_estimate()
        repo.update("estimate", eid, {"status": "Accepted"})
        self._slow_counts(repo, monkeypatch)
        # The second orchestrator builds its own allocator over the same store
        orchestrators = [
            LifecycleOrchestrator(repo, allocator=repo.allocator, clock=clock),
            LifecycleOrchestrator(repo, clock=clock),
        ]

        self._run_together(lambda: orchestrators.pop().on_status_change(
            "estimate", eid, "Sent", "Accepted",
        ))
        assert len(repo.get_jobs_for_estimate(eid)) == 1
