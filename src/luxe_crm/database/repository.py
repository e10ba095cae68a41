"""Repository layer — all CRUD operations and queries.

Besides the typed CRUD used by the admin screens, ``Repository`` is the
document store the lifecycle engine runs against: ``create``, ``update``,
``get`` and ``count_created_since`` address a document by kind
(``"estimate"``, ``"job"``, ``"invoice"``, ``"customer"``, ``"lead"``).
"""

import json
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from luxe_crm.config import Config
from luxe_crm.io.validators import (
    validate_line_items,
    validate_paid_amount,
    validate_tax_rate,
)
from luxe_crm.lifecycle.sequence import SequenceAllocator
from luxe_crm.lifecycle.totals import compute_totals, normalize_line_items
from luxe_crm.utils.constants import (
    INVOICE_PAID,
    INVOICE_PARTIALLY_PAID,
    INVOICE_VOID,
    LEAD_STATUSES,
    NOTIFICATION_SEVERITIES,
    REFERENCE_FIELDS,
)

from .connection import DatabaseConnection
from .models import (
    Customer,
    Estimate,
    Invoice,
    Job,
    Lead,
    LineItem,
    Notification,
)

_DOCUMENT_TABLES = {
    "customer": ("customers", Customer),
    "lead": ("leads", Lead),
    "estimate": ("estimates", Estimate),
    "job": ("jobs", Job),
    "invoice": ("invoices", Invoice),
}

# Store-managed columns that callers never write directly
_MANAGED_COLUMNS = {"id", "created_at", "updated_at"}

# Derivation guard flags: may be set, never cleared
_GUARD_FLAGS = {"job_created", "invoice_created"}


def _to_db(value):
    """Convert a model value to its SQLite representation."""
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return json.dumps([
            v.to_dict() if isinstance(v, LineItem) else v for v in value
        ])
    return value


def _raise_if(errors: list[str]):
    if errors:
        raise ValueError("; ".join(errors))


class Repository:
    """Provides all database operations for the application."""

    def __init__(self, db: DatabaseConnection,
                 clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock
        self.allocator = SequenceAllocator(self)

    def _now(self) -> str:
        return _to_db(self.clock())

    # ── Document store ──────────────────────────────────────────

    @staticmethod
    def _table(kind: str):
        try:
            return _DOCUMENT_TABLES[kind]
        except KeyError:
            raise ValueError(f"Unknown document kind: {kind}") from None

    @staticmethod
    def _prepare(model, fields: dict) -> dict:
        unknown = set(fields) - set(model.__dataclass_fields__)
        if unknown:
            raise ValueError(
                f"Unknown {model.__name__} fields: {', '.join(sorted(unknown))}"
            )
        return {
            k: _to_db(v) for k, v in fields.items()
            if k not in _MANAGED_COLUMNS
        }

    def create(self, kind: str, fields: dict) -> int:
        """Insert a document and return its id. Sets created_at."""
        table, model = self._table(kind)
        data = self._prepare(model, fields)
        now = self._now()
        data["created_at"] = now
        data["updated_at"] = now
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(data.values()),
            )
            return cursor.lastrowid

    def update(self, kind: str, doc_id: int, fields: dict):
        """Merge fields into a document. Sets updated_at.

        Raises ValueError if the document does not exist or a guard
        flag would be cleared.
        """
        table, model = self._table(kind)
        data = self._prepare(model, fields)
        cleared = [k for k in _GUARD_FLAGS & set(data) if not data[k]]
        if cleared:
            raise ValueError(f"Cannot clear {', '.join(cleared)} once set")
        data["updated_at"] = self._now()
        assignments = ", ".join(f"{col} = ?" for col in data)
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                (*data.values(), doc_id),
            )
            if cursor.rowcount == 0:
                raise ValueError(f"{kind} {doc_id} not found")

    def get(self, kind: str, doc_id: int):
        table, model = self._table(kind)
        rows = self.db.execute(f"SELECT * FROM {table} WHERE id = ?", (doc_id,))
        return model(**dict(rows[0])) if rows else None

    def count_created_since(self, kind: str, since: datetime) -> int:
        table, _ = self._table(kind)
        rows = self.db.execute(
            f"SELECT COUNT(*) AS cnt FROM {table} WHERE created_at >= ?",
            (_to_db(since),),
        )
        return rows[0]["cnt"] if rows else 0

    def _create_numbered(self, kind: str, fields: dict) -> int:
        """Create a document, allocating its reference number if unset."""
        number_field = REFERENCE_FIELDS[kind]
        if fields.get(number_field):
            return self.create(kind, fields)
        with self.allocator.reserve(kind, self.clock()) as number:
            fields[number_field] = number
            return self.create(kind, fields)

    def _get_by_number(self, kind: str, number: str):
        table, model = self._table(kind)
        rows = self.db.execute(
            f"SELECT * FROM {table} WHERE {REFERENCE_FIELDS[kind]} = ? "
            "ORDER BY id LIMIT 1",
            (number.strip(),),
        )
        return model(**dict(rows[0])) if rows else None

    def _customer_fields(self, customer_id: Optional[int],
                         name: str, email: str) -> dict:
        """Denormalized customer name/email, looked up when not given."""
        if customer_id is not None and not name:
            customer = self.get_customer_by_id(customer_id)
            if not customer:
                raise ValueError("Selected customer not found")
            name, email = customer.company_name, customer.email
        return {
            "customer_id": customer_id,
            "customer_name": name or "",
            "customer_email": email or "",
        }

    def _priced_fields(self, line_items: list, tax_rate: float) -> dict:
        """Validated line items with all totals recomputed."""
        _raise_if(validate_line_items(line_items) + validate_tax_rate(tax_rate))
        items = normalize_line_items(line_items)
        totals = compute_totals(items, tax_rate)
        return {
            "line_items": items,
            "tax_rate": float(tax_rate),
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "total_amount": totals.total_amount,
        }

    # ── Customers ───────────────────────────────────────────────

    def get_all_customers(self) -> list[Customer]:
        rows = self.db.execute(
            "SELECT * FROM customers ORDER BY company_name"
        )
        return [Customer(**dict(r)) for r in rows]

    def get_customer_by_id(self, customer_id: int) -> Optional[Customer]:
        return self.get("customer", customer_id)

    def search_customers(self, query: str) -> list[Customer]:
        if not query.strip():
            return self.get_all_customers()
        pattern = f"%{query.strip()}%"
        rows = self.db.execute(
            "SELECT * FROM customers WHERE company_name LIKE ? "
            "OR contact_name LIKE ? OR email LIKE ? ORDER BY company_name",
            (pattern, pattern, pattern),
        )
        return [Customer(**dict(r)) for r in rows]

    def create_customer(self, customer: Customer) -> int:
        if len(customer.company_name.strip()) < 2:
            raise ValueError("Company name must be at least 2 characters")
        return self.create("customer", {
            "company_name": customer.company_name.strip(),
            "contact_name": customer.contact_name,
            "email": customer.email,
            "phone": customer.phone,
            "address": customer.address,
            "notes": customer.notes,
        })

    def update_customer(self, customer: Customer):
        self.update("customer", customer.id, {
            "company_name": customer.company_name,
            "contact_name": customer.contact_name,
            "email": customer.email,
            "phone": customer.phone,
            "address": customer.address,
            "notes": customer.notes,
        })

    def delete_customer(self, customer_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM customers WHERE id = ?", (customer_id,))

    # ── Leads ───────────────────────────────────────────────────

    def get_all_leads(self, status: Optional[str] = None) -> list[Lead]:
        if status and status != "all":
            rows = self.db.execute(
                "SELECT * FROM leads WHERE status = ? ORDER BY created_at DESC",
                (status,),
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM leads ORDER BY created_at DESC"
            )
        return [Lead(**dict(r)) for r in rows]

    def get_lead_by_id(self, lead_id: int) -> Optional[Lead]:
        return self.get("lead", lead_id)

    def create_lead(self, lead: Lead) -> int:
        if lead.status not in LEAD_STATUSES:
            raise ValueError(f"Unknown lead status: {lead.status}")
        return self.create("lead", {
            "company_name": lead.company_name,
            "contact_name": lead.contact_name,
            "email": lead.email,
            "phone": lead.phone,
            "status": lead.status,
            "source": lead.source,
            "inquiry": lead.inquiry,
        })

    def update_lead(self, lead: Lead):
        if lead.status not in LEAD_STATUSES:
            raise ValueError(f"Unknown lead status: {lead.status}")
        self.update("lead", lead.id, {
            "company_name": lead.company_name,
            "contact_name": lead.contact_name,
            "email": lead.email,
            "phone": lead.phone,
            "status": lead.status,
            "source": lead.source,
            "inquiry": lead.inquiry,
        })

    def record_lead_score(self, lead_id: int, score: int, reason: str,
                          is_qualified: bool):
        """Store an AI lead score (0-100)."""
        self.update("lead", lead_id, {
            "lead_score": max(0, min(100, int(score))),
            "score_reason": reason,
            "is_qualified": 1 if is_qualified else 0,
        })

    def convert_lead_to_customer(self, lead_id: int) -> int:
        """Create a customer from a lead and mark the lead Qualified."""
        lead = self.get_lead_by_id(lead_id)
        if not lead:
            raise ValueError("Lead not found")
        customer_id = self.create_customer(Customer(
            company_name=lead.company_name,
            contact_name=lead.contact_name or "",
            email=lead.email or "",
            phone=lead.phone or "",
            notes=lead.inquiry or "",
        ))
        self.update("lead", lead_id, {"status": "Qualified"})
        return customer_id

    def delete_lead(self, lead_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM leads WHERE id = ?", (lead_id,))

    # ── Estimates ───────────────────────────────────────────────

    def get_all_estimates(self, status: Optional[str] = None) -> list[Estimate]:
        if status and status != "all":
            rows = self.db.execute(
                "SELECT * FROM estimates WHERE status = ? "
                "ORDER BY created_at DESC, id DESC",
                (status,),
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM estimates ORDER BY created_at DESC, id DESC"
            )
        return [Estimate(**dict(r)) for r in rows]

    def get_estimate_by_id(self, estimate_id: int) -> Optional[Estimate]:
        return self.get("estimate", estimate_id)

    def get_estimate_by_number(self, estimate_number: str) -> Optional[Estimate]:
        return self._get_by_number("estimate", estimate_number)

    def create_estimate(self, estimate: Estimate) -> int:
        """Create an estimate with recomputed totals.

        Allocates an EST number when ``estimate_number`` is empty and
        defaults ``valid_until`` to Config.ESTIMATE_VALID_DAYS from now.
        """
        fields = self._customer_fields(
            estimate.customer_id, estimate.customer_name,
            estimate.customer_email,
        )
        fields.update(self._priced_fields(
            estimate.line_item_list, estimate.tax_rate,
        ))
        fields.update({
            "estimate_number": estimate.estimate_number,
            "status": estimate.status,
            "valid_until": estimate.valid_until or (
                self.clock() + timedelta(days=Config.ESTIMATE_VALID_DAYS)
            ),
            "notes": estimate.notes or "",
        })
        return self._create_numbered("estimate", fields)

    def update_estimate(self, estimate: Estimate):
        """Save edits to customer, pricing, validity and notes.

        Status and the job_created flag are not written here; status
        changes go through ``StatusService.change_status`` so that
        derivations fire.
        """
        fields = self._customer_fields(
            estimate.customer_id, estimate.customer_name,
            estimate.customer_email,
        )
        fields.update(self._priced_fields(
            estimate.line_item_list, estimate.tax_rate,
        ))
        fields["valid_until"] = estimate.valid_until
        fields["notes"] = estimate.notes or ""
        self.update("estimate", estimate.id, fields)

    def delete_estimate(self, estimate_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM estimates WHERE id = ?", (estimate_id,))

    # ── Jobs ────────────────────────────────────────────────────

    def get_all_jobs(self, status: Optional[str] = None) -> list[Job]:
        if status and status != "all":
            rows = self.db.execute(
                "SELECT * FROM jobs WHERE status = ? "
                "ORDER BY created_at DESC, id DESC",
                (status,),
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM jobs ORDER BY created_at DESC, id DESC"
            )
        return [Job(**dict(r)) for r in rows]

    def get_job_by_id(self, job_id: int) -> Optional[Job]:
        return self.get("job", job_id)

    def get_job_by_number(self, job_number: str) -> Optional[Job]:
        return self._get_by_number("job", job_number)

    def get_jobs_for_estimate(self, estimate_id: int) -> list[Job]:
        rows = self.db.execute(
            "SELECT * FROM jobs WHERE estimate_id = ? ORDER BY id",
            (estimate_id,),
        )
        return [Job(**dict(r)) for r in rows]

    def create_job(self, job: Job) -> int:
        """Create a job by hand (derived jobs come from the orchestrator)."""
        if len((job.description or "").strip()) < 5:
            raise ValueError("Description must be at least 5 characters")
        fields = self._customer_fields(
            job.customer_id, job.customer_name, job.customer_email,
        )
        fields.update({
            "job_number": job.job_number,
            "technician_id": job.technician_id,
            "technician_name": job.technician_name or "",
            "description": job.description.strip(),
            "status": job.status,
            "scheduled_date": job.scheduled_date,
            "notes": job.notes or "",
            "internal_notes": job.internal_notes or "",
            "estimate_id": job.estimate_id,
        })
        return self._create_numbered("job", fields)

    def update_job(self, job: Job):
        """Save edits to assignment, scheduling, description and notes.

        Status, completion_date and invoice_created are managed by
        ``StatusService`` and the lifecycle orchestrator.
        """
        fields = self._customer_fields(
            job.customer_id, job.customer_name, job.customer_email,
        )
        fields.update({
            "technician_id": job.technician_id,
            "technician_name": job.technician_name or "",
            "description": job.description,
            "scheduled_date": job.scheduled_date,
            "notes": job.notes or "",
            "internal_notes": job.internal_notes or "",
        })
        self.update("job", job.id, fields)

    def delete_job(self, job_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))

    # ── Invoices ────────────────────────────────────────────────

    def get_all_invoices(self, status: Optional[str] = None) -> list[Invoice]:
        if status and status != "all":
            rows = self.db.execute(
                "SELECT * FROM invoices WHERE status = ? "
                "ORDER BY created_at DESC, id DESC",
                (status,),
            )
        else:
            rows = self.db.execute(
                "SELECT * FROM invoices ORDER BY created_at DESC, id DESC"
            )
        return [Invoice(**dict(r)) for r in rows]

    def get_invoice_by_id(self, invoice_id: int) -> Optional[Invoice]:
        return self.get("invoice", invoice_id)

    def get_invoice_by_number(self, invoice_number: str) -> Optional[Invoice]:
        return self._get_by_number("invoice", invoice_number)

    def get_invoices_for_job(self, job_id: int) -> list[Invoice]:
        rows = self.db.execute(
            "SELECT * FROM invoices WHERE job_id = ? ORDER BY id", (job_id,)
        )
        return [Invoice(**dict(r)) for r in rows]

    def create_invoice(self, invoice: Invoice) -> int:
        """Create an invoice by hand, due in Config.INVOICE_DUE_DAYS by default."""
        _raise_if(validate_paid_amount(invoice.paid_amount))
        fields = self._customer_fields(
            invoice.customer_id, invoice.customer_name,
            invoice.customer_email,
        )
        fields.update(self._priced_fields(
            invoice.line_item_list, invoice.tax_rate,
        ))
        fields.update({
            "invoice_number": invoice.invoice_number,
            "job_id": invoice.job_id,
            "estimate_id": invoice.estimate_id,
            "status": invoice.status,
            "paid_amount": float(invoice.paid_amount or 0.0),
            "payment_date": invoice.payment_date,
            "due_date": invoice.due_date or (
                self.clock() + timedelta(days=Config.INVOICE_DUE_DAYS)
            ),
            "notes": invoice.notes or "",
        })
        return self._create_numbered("invoice", fields)

    def update_invoice(self, invoice: Invoice):
        """Save edits to pricing, status, due date and notes."""
        _raise_if(validate_paid_amount(invoice.paid_amount))
        fields = self._customer_fields(
            invoice.customer_id, invoice.customer_name,
            invoice.customer_email,
        )
        fields.update(self._priced_fields(
            invoice.line_item_list, invoice.tax_rate,
        ))
        fields.update({
            "status": invoice.status,
            "paid_amount": float(invoice.paid_amount or 0.0),
            "payment_date": invoice.payment_date,
            "due_date": invoice.due_date,
            "notes": invoice.notes or "",
        })
        self.update("invoice", invoice.id, fields)

    def record_invoice_payment(self, invoice_id: int, amount: float,
                               paid_at: Optional[datetime] = None) -> Invoice:
        """Apply a payment: Paid once the balance is covered, else Partially Paid."""
        if amount <= 0:
            raise ValueError("Payment amount must be greater than 0")
        invoice = self.get_invoice_by_id(invoice_id)
        if not invoice:
            raise ValueError("Invoice not found")
        if invoice.status == INVOICE_VOID:
            raise ValueError("Cannot record a payment on a void invoice")

        paid = (invoice.paid_amount or 0.0) + amount
        status = (
            INVOICE_PAID if round(paid, 2) >= round(invoice.total_amount, 2)
            else INVOICE_PARTIALLY_PAID
        )
        self.update("invoice", invoice_id, {
            "paid_amount": paid,
            "payment_date": paid_at or self.clock(),
            "status": status,
        })
        return self.get_invoice_by_id(invoice_id)

    def delete_invoice(self, invoice_id: int):
        with self.db.get_connection() as conn:
            conn.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))

    # ── Notifications ───────────────────────────────────────────

    def create_notification(self, notification: Notification) -> int:
        if notification.severity not in NOTIFICATION_SEVERITIES:
            raise ValueError(
                f"Unknown notification severity: {notification.severity}"
            )
        with self.db.get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO notifications
                    (title, message, severity, source,
                     target_kind, target_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                notification.title, notification.message,
                notification.severity, notification.source,
                notification.target_kind or "",
                notification.target_id,
                self._now(),
            ))
            return cursor.lastrowid

    def get_notifications(self, unread_only: bool = False,
                          limit: int = 50) -> list[Notification]:
        if unread_only:
            rows = self.db.execute("""
                SELECT * FROM notifications WHERE is_read = 0
                ORDER BY created_at DESC, id DESC LIMIT ?
            """, (limit,))
        else:
            rows = self.db.execute("""
                SELECT * FROM notifications
                ORDER BY created_at DESC, id DESC LIMIT ?
            """, (limit,))
        return [Notification(**dict(r)) for r in rows]

    def mark_notification_read(self, notification_id: int):
        with self.db.get_connection() as conn:
            conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ?",
                (notification_id,),
            )

    def mark_all_notifications_read(self):
        with self.db.get_connection() as conn:
            conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE is_read = 0"
            )

    def get_unread_count(self) -> int:
        rows = self.db.execute(
            "SELECT COUNT(*) as cnt FROM notifications WHERE is_read = 0"
        )
        return rows[0]["cnt"] if rows else 0
