"""Database schema definition, initialization, and migrations."""

import sqlite3

SCHEMA_VERSION = 2

# Each statement is a separate string to avoid executescript issues
_SCHEMA_STATEMENTS = [
    # Customers table
    """CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        company_name TEXT NOT NULL,
        contact_name TEXT,
        email TEXT,
        phone TEXT,
        address TEXT,
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Leads table (intake before a lead becomes a customer)
    """CREATE TABLE IF NOT EXISTS leads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        company_name TEXT NOT NULL,
        contact_name TEXT,
        email TEXT,
        phone TEXT,
        status TEXT NOT NULL DEFAULT 'New'
            CHECK (status IN ('New', 'Contacted', 'Qualified', 'Lost')),
        source TEXT,
        inquiry TEXT,
        lead_score INTEGER CHECK (lead_score BETWEEN 0 AND 100),
        score_reason TEXT,
        is_qualified INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Estimates table
    """CREATE TABLE IF NOT EXISTS estimates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        estimate_number TEXT NOT NULL,
        customer_id INTEGER,
        customer_name TEXT,
        customer_email TEXT,
        line_items TEXT NOT NULL DEFAULT '[]',
        tax_rate REAL NOT NULL DEFAULT 0.0
            CHECK (tax_rate BETWEEN 0 AND 1),
        subtotal REAL NOT NULL DEFAULT 0.0,
        tax_amount REAL NOT NULL DEFAULT 0.0,
        total_amount REAL NOT NULL DEFAULT 0.0,
        status TEXT NOT NULL DEFAULT 'Draft'
            CHECK (status IN ('Draft', 'Sent', 'Accepted',
                              'Rejected', 'Expired')),
        valid_until TIMESTAMP,
        notes TEXT,
        job_created INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE SET NULL
    )""",

    # Jobs table
    """CREATE TABLE IF NOT EXISTS jobs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        job_number TEXT NOT NULL,
        customer_id INTEGER,
        customer_name TEXT,
        customer_email TEXT,
        technician_id INTEGER,
        technician_name TEXT,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'Pending Schedule'
            CHECK (status IN ('Pending Schedule', 'Scheduled', 'Dispatched',
                              'In Progress', 'On Hold', 'Completed',
                              'Cancelled', 'Requires Follow-up')),
        scheduled_date TIMESTAMP,
        completion_date TIMESTAMP,
        notes TEXT,
        internal_notes TEXT,
        estimate_id INTEGER,
        invoice_created INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE SET NULL,
        FOREIGN KEY (estimate_id) REFERENCES estimates(id) ON DELETE SET NULL
    )""",

    # Invoices table
    """CREATE TABLE IF NOT EXISTS invoices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        invoice_number TEXT NOT NULL,
        customer_id INTEGER,
        customer_name TEXT,
        customer_email TEXT,
        job_id INTEGER,
        estimate_id INTEGER,
        line_items TEXT NOT NULL DEFAULT '[]',
        tax_rate REAL NOT NULL DEFAULT 0.0
            CHECK (tax_rate BETWEEN 0 AND 1),
        subtotal REAL NOT NULL DEFAULT 0.0,
        tax_amount REAL NOT NULL DEFAULT 0.0,
        total_amount REAL NOT NULL DEFAULT 0.0,
        status TEXT NOT NULL DEFAULT 'Draft'
            CHECK (status IN ('Draft', 'Sent', 'Paid', 'Partially Paid',
                              'Overdue', 'Void')),
        paid_amount REAL NOT NULL DEFAULT 0.0 CHECK (paid_amount >= 0),
        payment_date TIMESTAMP,
        due_date TIMESTAMP,
        notes TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE SET NULL,
        FOREIGN KEY (job_id) REFERENCES jobs(id) ON DELETE SET NULL,
        FOREIGN KEY (estimate_id) REFERENCES estimates(id) ON DELETE SET NULL
    )""",

    # Notifications (derivation results shown to office staff)
    """CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        message TEXT,
        severity TEXT NOT NULL DEFAULT 'info'
            CHECK (severity IN ('info', 'warning', 'error')),
        source TEXT NOT NULL DEFAULT 'system',
        target_kind TEXT,
        target_id INTEGER,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Schema version tracking
    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",

    # Indexes (reference numbers are not UNIQUE: the daily counter can collide)
    "CREATE INDEX IF NOT EXISTS idx_estimates_number ON estimates(estimate_number)",
    "CREATE INDEX IF NOT EXISTS idx_estimates_created ON estimates(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_estimates_status ON estimates(status)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_number ON jobs(job_number)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_created ON jobs(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_estimate ON jobs(estimate_id)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_number ON invoices(invoice_number)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_created ON invoices(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_invoices_job ON invoices(job_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_read ON notifications(is_read)",

    # Record schema version
    f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})",
]


def _get_schema_version(conn) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) as v FROM schema_version"
        ).fetchone()
        return row["v"] if row and row["v"] else 0
    except sqlite3.OperationalError:
        return 0


# ── Migration from v1 → v2 ──────────────────────────────────────
# v1 had no derivation guard flags and no notifications table.
_MIGRATION_V2_STATEMENTS = [
    "ALTER TABLE estimates ADD COLUMN job_created INTEGER NOT NULL DEFAULT 0",
    "ALTER TABLE jobs ADD COLUMN invoice_created INTEGER NOT NULL DEFAULT 0",

    """CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        message TEXT,
        severity TEXT NOT NULL DEFAULT 'info'
            CHECK (severity IN ('info', 'warning', 'error')),
        source TEXT NOT NULL DEFAULT 'system',
        target_kind TEXT,
        target_id INTEGER,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    "CREATE INDEX IF NOT EXISTS idx_notifications_read ON notifications(is_read)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_estimate ON jobs(estimate_id)",

    "INSERT OR REPLACE INTO schema_version (version) VALUES (2)",
]


def _migrate_v1_to_v2(conn):
    """Upgrade schema from v1 to v2.

    Estimates that already have a linked job, and jobs that already have a
    linked invoice, start with their guard flag set.
    """
    for stmt in _MIGRATION_V2_STATEMENTS:
        conn.execute(stmt)
    conn.execute(
        "UPDATE estimates SET job_created = 1 WHERE id IN "
        "(SELECT estimate_id FROM jobs WHERE estimate_id IS NOT NULL)"
    )
    conn.execute(
        "UPDATE jobs SET invoice_created = 1 WHERE id IN "
        "(SELECT job_id FROM invoices WHERE job_id IS NOT NULL)"
    )


def initialize_database(db_connection):
    """Create all tables and indexes.

    On a fresh database, creates the full v2 schema directly.
    On an existing database, applies migrations incrementally.
    """
    with db_connection.get_connection() as conn:
        conn.execute("PRAGMA foreign_keys = ON")

        version = _get_schema_version(conn)

        if version == 0:
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
        elif version < SCHEMA_VERSION:
            if version < 2:
                _migrate_v1_to_v2(conn)
