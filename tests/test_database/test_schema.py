"""Tests for schema creation and the v1 -> v2 migration."""

import sqlite3

import pytest

from luxe_crm.database.connection import DatabaseConnection
from luxe_crm.database.schema import SCHEMA_VERSION, initialize_database


def _columns(db, table):
    return {r["name"] for r in db.execute(f"PRAGMA table_info({table})")}


def _version(db):
    return db.execute("SELECT MAX(version) AS v FROM schema_version")[0]["v"]


class TestFreshSchema:
    def test_creates_all_tables(self, db):
        rows = db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        )
        names = {r["name"] for r in rows}
        for table in ("customers", "leads", "estimates", "jobs",
                      "invoices", "notifications", "schema_version"):
            assert table in names

    def test_records_current_version(self, db):
        assert _version(db) == SCHEMA_VERSION

    def test_guard_flag_columns(self, db):
        assert "job_created" in _columns(db, "estimates")
        assert "invoice_created" in _columns(db, "jobs")

    def test_idempotent(self, db):
        initialize_database(db)
        assert _version(db) == SCHEMA_VERSION

    def test_reference_numbers_not_unique(self, db):
        # The daily counter can hand out the same number twice
        for _ in range(2):
            db.execute(
                "INSERT INTO estimates (estimate_number) VALUES ('EST-20240715-001')"
            )
        assert len(db.execute("SELECT id FROM estimates")) == 2

    def test_rejects_unknown_status(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            db.execute(
                "INSERT INTO jobs (job_number, status) VALUES ('J', 'Done')"
            )

    def test_rejects_tax_rate_above_one(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            db.execute(
                "INSERT INTO estimates (estimate_number, tax_rate) "
                "VALUES ('E', 8)"
            )


_V1_SCRIPT = """
CREATE TABLE schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
INSERT INTO schema_version (version) VALUES (1);
CREATE TABLE customers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_name TEXT NOT NULL
);
CREATE TABLE estimates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    estimate_number TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Draft'
);
CREATE TABLE jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    job_number TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Pending Schedule',
    estimate_id INTEGER
);
CREATE TABLE invoices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number TEXT NOT NULL,
    job_id INTEGER
);
INSERT INTO estimates (estimate_number, status) VALUES ('EST-1', 'Accepted');
INSERT INTO estimates (estimate_number, status) VALUES ('EST-2', 'Sent');
INSERT INTO jobs (job_number, status, estimate_id) VALUES ('JOB-1', 'Completed', 1);
INSERT INTO jobs (job_number, status, estimate_id) VALUES ('JOB-2', 'Scheduled', NULL);
INSERT INTO invoices (invoice_number, job_id) VALUES ('INV-1', 1);
"""


class TestMigrationV1ToV2:
    @pytest.fixture
    def v1_db(self, tmp_path):
        db = DatabaseConnection(tmp_path / "v1.db")
        with db.get_connection() as conn:
            conn.executescript(_V1_SCRIPT)
        return db

    def test_upgrades_version(self, v1_db):
        initialize_database(v1_db)
        assert _version(v1_db) == 2

    def test_adds_notifications_table(self, v1_db):
        initialize_database(v1_db)
        assert "severity" in _columns(v1_db, "notifications")

    def test_backfills_job_created(self, v1_db):
        initialize_database(v1_db)
        rows = v1_db.execute(
            "SELECT estimate_number, job_created FROM estimates ORDER BY id"
        )
        assert [(r[0], r[1]) for r in rows] == [("EST-1", 1), ("EST-2", 0)]

    def test_backfills_invoice_created(self, v1_db):
        initialize_database(v1_db)
        rows = v1_db.execute(
            "SELECT job_number, invoice_created FROM jobs ORDER BY id"
        )
        assert [(r[0], r[1]) for r in rows] == [("JOB-1", 1), ("JOB-2", 0)]

    def test_second_run_is_noop(self, v1_db):
        initialize_database(v1_db)
        initialize_database(v1_db)
        assert _version(v1_db) == 2
