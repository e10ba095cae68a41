"""Rules that turn one document into the fields of the next.

Estimate -> Job when an estimate is accepted, Job -> Invoice when a job
is completed. Both functions are pure: they read the source model and
return a plain dict of fields for ``DocumentStore.create``. The returned
draft never carries a reference number; the orchestrator allocates one.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

from luxe_crm.config import Config
from luxe_crm.database.models import Estimate, Job, LineItem
from luxe_crm.lifecycle.totals import compute_totals, normalize_line_items
from luxe_crm.utils.constants import INVOICE_DRAFT, JOB_PENDING_SCHEDULE


def job_description_for(estimate: Estimate) -> str:
    """Notes if present, else the joined line-item descriptions."""
    if estimate.notes and estimate.notes.strip():
        return estimate.notes.strip()
    descriptions = [
        item.description.strip()
        for item in estimate.line_item_list
        if item.description and item.description.strip()
    ]
    if descriptions:
        return ", ".join(descriptions)
    return f"Job for Estimate {estimate.estimate_number}"


def derive_job(estimate: Estimate) -> dict:
    """Build the fields of a Job for an accepted estimate.

    Jobs carry no pricing, so line items, amounts and tax rate stay on
    the estimate until the job is invoiced.
    """
    return {
        "customer_id": estimate.customer_id,
        "customer_name": estimate.customer_name,
        "customer_email": estimate.customer_email,
        "technician_id": None,
        "technician_name": "",
        "description": job_description_for(estimate),
        "status": JOB_PENDING_SCHEDULE,
        "scheduled_date": None,
        "completion_date": None,
        "notes": "",
        "internal_notes": "",
        "estimate_id": estimate.id,
        "invoice_created": 0,
    }


def derive_invoice(job: Job, estimate: Optional[Estimate],
                   now: datetime,
                   id_factory: Callable[[], str] | None = None) -> dict:
    """Build the fields of an Invoice for a completed job.

    ``estimate`` is the job's originating estimate, or None when the job
    has none or it no longer exists. Without an estimate the invoice gets
    one zero-priced placeholder line for the office to fill in.
    """
    if estimate is not None:
        items = normalize_line_items(
            estimate.line_item_list, new_ids=True, id_factory=id_factory,
        )
        tax_rate = estimate.tax_rate or 0.0
    else:
        description = (job.description or "").strip()
        items = normalize_line_items([LineItem(
            description=description or f"Services for Job {job.job_number}",
            quantity=1,
            unit_price=0.0,
        )], new_ids=True, id_factory=id_factory)
        tax_rate = 0.0

    totals = compute_totals(items, tax_rate)
    return {
        "customer_id": job.customer_id,
        "customer_name": job.customer_name,
        "customer_email": job.customer_email,
        "job_id": job.id,
        "estimate_id": estimate.id if estimate is not None else None,
        "line_items": items,
        "tax_rate": tax_rate,
        "subtotal": totals.subtotal,
        "tax_amount": totals.tax_amount,
        "total_amount": totals.total_amount,
        "status": INVOICE_DRAFT,
        "paid_amount": 0.0,
        "payment_date": None,
        "due_date": now + timedelta(days=Config.INVOICE_DUE_DAYS),
        "notes": "",
    }

