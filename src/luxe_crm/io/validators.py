"""Validation rules for document data written through the repository."""


def validate_line_items(line_items: list) -> list[str]:
    """Validate line items. Returns list of error strings."""
    errors = []
    if not line_items:
        errors.append("At least one line item is required")
        return errors

    for num, item in enumerate(line_items, start=1):
        if not isinstance(item, dict):
            item = item.to_dict()

        desc = (item.get("description") or "").strip()
        if not desc:
            errors.append(f"Line {num}: description is required")

        try:
            qty = float(item.get("quantity", ""))
            if qty <= 0:
                errors.append(f"Line {num}: quantity must be greater than 0")
        except (ValueError, TypeError):
            errors.append(f"Line {num}: quantity must be a number")

        try:
            price = float(item.get("unit_price", ""))
            if price < 0:
                errors.append(f"Line {num}: unit_price cannot be negative")
        except (ValueError, TypeError):
            errors.append(f"Line {num}: unit_price must be a number")

    return errors


def validate_tax_rate(tax_rate) -> list[str]:
    """Tax rate is a decimal fraction, e.g. 0.08 for 8%."""
    try:
        rate = float(tax_rate)
    except (ValueError, TypeError):
        return ["tax_rate must be a number"]
    if rate < 0:
        return ["tax_rate cannot be negative"]
    if rate > 1:
        return ["tax_rate should be a decimal between 0 and 1 (e.g. 0.05 for 5%)"]
    return []


def validate_paid_amount(paid_amount) -> list[str]:
    try:
        amount = float(paid_amount)
    except (ValueError, TypeError):
        return ["paid_amount must be a number"]
    if amount < 0:
        return ["paid_amount cannot be negative"]
    return []
