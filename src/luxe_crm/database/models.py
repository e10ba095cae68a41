"""Data models for the database layer."""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class LineItem:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    total_price: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            id=data.get("id") or uuid.uuid4().hex,
            description=data.get("description", "") or "",
            quantity=float(data.get("quantity", 0) or 0),
            unit_price=float(data.get("unit_price", 0) or 0),
            total_price=float(data.get("total_price", 0) or 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_line_items(raw) -> list[LineItem]:
    if isinstance(raw, list):
        items = raw
    else:
        try:
            items = json.loads(raw) if raw else []
        except (json.JSONDecodeError, TypeError):
            return []
    return [
        item if isinstance(item, LineItem) else LineItem.from_dict(item)
        for item in items
    ]


@dataclass
class Customer:
    id: Optional[int] = None
    company_name: str = ""
    contact_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None  # "customer since"
    updated_at: Optional[datetime] = None


@dataclass
class Lead:
    id: Optional[int] = None
    company_name: str = ""
    contact_name: str = ""
    email: str = ""
    phone: str = ""
    status: str = "New"
    source: str = ""
    inquiry: str = ""
    lead_score: Optional[int] = None
    score_reason: str = ""
    is_qualified: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Estimate:
    id: Optional[int] = None
    estimate_number: str = ""
    customer_id: Optional[int] = None
    customer_name: str = ""
    customer_email: str = ""
    line_items: str = "[]"     # JSON array of LineItem dicts
    tax_rate: float = 0.0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    status: str = "Draft"
    valid_until: Optional[datetime] = None
    notes: str = ""
    job_created: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def line_item_list(self) -> list[LineItem]:
        return _parse_line_items(self.line_items)

    @property
    def is_job_created(self) -> bool:
        return bool(self.job_created)


@dataclass
class Job:
    id: Optional[int] = None
    job_number: str = ""
    customer_id: Optional[int] = None
    customer_name: str = ""
    customer_email: str = ""
    technician_id: Optional[int] = None
    technician_name: str = ""
    description: str = ""
    status: str = "Pending Schedule"
    scheduled_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    notes: str = ""
    internal_notes: str = ""
    estimate_id: Optional[int] = None
    invoice_created: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_invoice_created(self) -> bool:
        return bool(self.invoice_created)


@dataclass
class Invoice:
    id: Optional[int] = None
    invoice_number: str = ""
    customer_id: Optional[int] = None
    customer_name: str = ""
    customer_email: str = ""
    job_id: Optional[int] = None
    estimate_id: Optional[int] = None
    line_items: str = "[]"     # JSON array of LineItem dicts
    tax_rate: float = 0.0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    status: str = "Draft"
    paid_amount: float = 0.0
    payment_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def line_item_list(self) -> list[LineItem]:
        return _parse_line_items(self.line_items)

    @property
    def balance_due(self) -> float:
        return max(self.total_amount - (self.paid_amount or 0.0), 0.0)

    @property
    def is_paid(self) -> bool:
        return self.status == "Paid"


@dataclass
class Notification:
    id: Optional[int] = None
    title: str = ""
    message: str = ""
    severity: str = "info"
    source: str = "system"
    target_kind: str = ""
    target_id: Optional[int] = None
    is_read: int = 0
    created_at: Optional[datetime] = None
