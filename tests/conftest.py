"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest

from luxe_crm.database.connection import DatabaseConnection
from luxe_crm.database.models import Customer, Estimate, LineItem
from luxe_crm.database.repository import Repository
from luxe_crm.database.schema import initialize_database


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 7, 15, 10, 30, 0))


@pytest.fixture
def repo(db, clock):
    """Provide a repository with an initialized database and fixed clock."""
    return Repository(db, clock=clock)


@pytest.fixture
def customer_id(repo):
    return repo.create_customer(Customer(
        company_name="Harbor View Condos",
        contact_name="Dana Whitfield",
        email="dana@harborview.example",
    ))


@pytest.fixture
def make_estimate(repo, customer_id):
    """Factory creating an estimate for the shared customer."""

    def _make(items=None, tax_rate=0.08, notes="", status="Sent"):
        estimate = Estimate(
            customer_id=customer_id,
            tax_rate=tax_rate,
            notes=notes,
            status=status,
        )
        estimate.line_items = items if items is not None else [
            LineItem(id="a", description="A", quantity=2, unit_price=10.0),
            LineItem(id="b", description="B", quantity=1, unit_price=5.0),
        ]
        return repo.create_estimate(estimate)

    return _make
