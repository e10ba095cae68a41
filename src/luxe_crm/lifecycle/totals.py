"""Line-item and document total calculations.

Totals are always derived from quantities and unit prices; stored or
user-supplied totals are never trusted.
"""

import uuid
from dataclasses import dataclass
from typing import Callable, Iterable

from luxe_crm.database.models import LineItem


@dataclass(frozen=True)
class Totals:
    subtotal: float
    tax_amount: float
    total_amount: float


def compute_totals(line_items: Iterable, tax_rate: float) -> Totals:
    """Return subtotal, tax and total for a set of line items.

    Accepts LineItem objects or dicts with ``quantity``/``unit_price``.
    """
    subtotal = 0.0
    for item in line_items:
        if isinstance(item, dict):
            quantity = float(item.get("quantity", 0) or 0)
            unit_price = float(item.get("unit_price", 0) or 0)
        else:
            quantity, unit_price = item.quantity, item.unit_price
        subtotal += quantity * unit_price
    tax_amount = subtotal * tax_rate
    return Totals(subtotal, tax_amount, subtotal + tax_amount)


def normalize_line_items(line_items: Iterable,
                         new_ids: bool = False,
                         id_factory: Callable[[], str] | None = None
                         ) -> list[LineItem]:
    """Copy line items with each total recomputed.

    With ``new_ids`` every item is re-keyed (used when copying items
    between documents); otherwise missing ids are filled in.
    """
    make_id = id_factory or (lambda: uuid.uuid4().hex)
    result = []
    for item in line_items:
        src = item if isinstance(item, LineItem) else LineItem.from_dict(item)
        result.append(LineItem(
            id=make_id() if new_ids or not src.id else src.id,
            description=src.description,
            quantity=src.quantity,
            unit_price=src.unit_price,
            total_price=src.quantity * src.unit_price,
        ))
    return result
