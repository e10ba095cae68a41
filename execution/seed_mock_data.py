"""Seed the database with realistic mock data for development and demos.

Creates:
  - 5 customers and 3 leads
  - 6 estimates across every status
  - jobs and invoices derived by walking some of them through the
    lifecycle (Accepted estimates, Completed jobs, one payment)

Run:
    python -m execution.seed_mock_data          (from project root)
    python execution/seed_mock_data.py          (direct)

WARNING: This script INSERTS data — run against a fresh DB to avoid
duplicates. Delete data/luxe_crm.db first for a clean start.
"""

import os
import sys

# Ensure project src is on the path
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, "src"))

from luxe_crm.database.connection import DatabaseConnection
from luxe_crm.database.models import Customer, Estimate, Lead, LineItem
from luxe_crm.database.repository import Repository
from luxe_crm.database.schema import initialize_database
from luxe_crm.lifecycle.service import StatusService


def seed(repo: Repository) -> dict:
    """Populate the database with mock data. Returns created counts."""
    service = StatusService(repo)

    # ── 1. Customers ──────────────────────────────────────────────
    print("Creating customers...")
    customers_data = [
        ("Harbor View Condos", "Dana Whitfield", "dana@harborview.example"),
        ("Maple Street Dental", "Dr. Ravi Patel", "office@maplesmiles.example"),
        ("Greenleaf Property Group", "Tom Alvarez", "tom@greenleaf.example"),
        ("Sunset Bistro", "Mia Laurent", "mia@sunsetbistro.example"),
        ("Oakridge HOA", "Linda Brooks", "board@oakridge.example"),
    ]
    customer_ids = []
    for company, contact, email in customers_data:
        customer_ids.append(repo.create_customer(Customer(
            company_name=company, contact_name=contact, email=email,
        )))
    print(f"  → {len(customer_ids)} customers created")

    # ── 2. Leads ──────────────────────────────────────────────────
    print("Creating leads...")
    leads_data = [
        ("Riverside Lofts", "Sam Ortiz", "Website",
         "We need quarterly HVAC maintenance for 40 units."),
        ("Pine Hill Clinic", "Grace Kim", "Referral",
         "Looking for a quote on parking lot lighting repairs."),
        ("Blue Door Cafe", "Owen Hart", "Phone",
         "Just curious what you charge."),
    ]
    for company, contact, source, inquiry in leads_data:
        repo.create_lead(Lead(
            company_name=company, contact_name=contact,
            source=source, inquiry=inquiry,
        ))
    print(f"  → {len(leads_data)} leads created")

    # ── 3. Estimates ──────────────────────────────────────────────
    print("Creating estimates...")
    estimates_data = [
        (0, "Sent", 0.08, [("Roof inspection", 1, 250.0),
                           ("Gutter cleaning", 12, 15.0)]),
        (1, "Draft", 0.08, [("Replace ceiling tiles", 20, 12.5)]),
        (2, "Sent", 0.0725, [("Boiler service", 1, 480.0),
                             ("Filter replacement", 6, 35.0)]),
        (3, "Rejected", 0.08, [("Kitchen exhaust hood cleaning", 1, 650.0)]),
        (4, "Sent", 0.06, [("Pool pump repair", 1, 390.0)]),
        (0, "Expired", 0.08, [("Exterior pressure wash", 1, 900.0)]),
    ]
    estimate_ids = []
    for idx, status, tax_rate, items in estimates_data:
        estimate = Estimate(
            customer_id=customer_ids[idx],
            tax_rate=tax_rate,
            status=status,
        )
        estimate.line_items = [
            LineItem(description=d, quantity=q, unit_price=p)
            for d, q, p in items
        ]
        estimate_ids.append(repo.create_estimate(estimate))
    print(f"  → {len(estimate_ids)} estimates created")

    # ── 4. Walk the lifecycle ─────────────────────────────────────
    print("Accepting estimates and completing jobs...")
    jobs = []
    for estimate_id in (estimate_ids[0], estimate_ids[2], estimate_ids[4]):
        result = service.change_status("estimate", estimate_id, "Accepted")
        jobs.extend(r.derived_id for r in result.outcome.created)

    service.change_status("job", jobs[1], "Scheduled")
    invoices = []
    for job_id in (jobs[0], jobs[2]):
        result = service.change_status("job", job_id, "Completed")
        invoices.extend(r.derived_id for r in result.outcome.created)

    invoice = repo.get_invoice_by_id(invoices[0])
    repo.record_invoice_payment(invoice.id, round(invoice.total_amount / 2, 2))
    print(f"  → {len(jobs)} jobs and {len(invoices)} invoices derived")

    # ── Done ──────────────────────────────────────────────────────
    print("\n✓ Mock data seeded successfully!")
    counts = {
        "customers": len(customer_ids),
        "leads": len(leads_data),
        "estimates": len(estimate_ids),
        "jobs": len(jobs),
        "invoices": len(invoices),
    }
    for name, count in counts.items():
        print(f"  {name.title()}: {count}")
    return counts


def main():
    from luxe_crm.config import Config
    db_path = Config.DATABASE_PATH
    print(f"Database: {db_path}")

    # Confirm if DB exists
    if os.path.exists(db_path):
        resp = input("Database already exists. Seed anyway? (y/N): ").strip().lower()
        if resp != "y":
            print("Aborted.")
            return

    db = DatabaseConnection(db_path)
    initialize_database(db)
    repo = Repository(db)
    seed(repo)


if __name__ == "__main__":
    main()
