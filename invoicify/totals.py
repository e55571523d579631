"""
Money arithmetic the editors run before saving.
The sync layer stores whatever it is given and never calls these.
"""


def line_amount(item: dict) -> float:
    return float(item.get("quantity") or 0) * float(item.get("rate") or 0)


def invoice_totals(invoice: dict, tax_enabled: bool = True) -> dict:
    """Return a copy of invoice with item amounts and totals filled in.

    Discount comes off the subtotal before tax; tax is zero when the
    company has tax switched off.
    """
    items = [dict(item, amount=line_amount(item)) for item in invoice.get("items") or []]
    subtotal = sum(item["amount"] for item in items)
    discount_amount = subtotal * float(invoice.get("discountRate") or 0) / 100
    taxable = subtotal - discount_amount
    tax_amount = taxable * float(invoice.get("taxRate") or 0) / 100 if tax_enabled else 0.0

    return dict(
        invoice,
        items=items,
        subtotal=subtotal,
        discountAmount=discount_amount,
        taxAmount=tax_amount,
        total=taxable + tax_amount,
    )


def payroll_total(run: dict) -> float:
    return (
        float(run.get("baseAmount") or 0)
        + float(run.get("bonus") or 0)
        - float(run.get("deductions") or 0)
    )


def hourly_base_pay(staff: dict, work_logs: list[dict], month: str) -> float:
    """Hours the staff member logged in month (YYYY-MM) times their rate."""
    hours = sum(
        float(log.get("hours") or 0)
        for log in work_logs
        if log.get("staffId") == staff.get("id") and str(log.get("date", "")).startswith(month)
    )
    return hours * float(staff.get("hourlyRate") or 0)
