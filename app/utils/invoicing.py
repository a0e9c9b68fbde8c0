"""
Invoice numbering and amount calculations.

Amounts are handled as Decimal throughout and rounded half-up to two places,
matching the Numeric(10, 2) columns they are stored in.
"""

from decimal import Decimal, ROUND_HALF_UP

from app.models import Invoice
from app.utils.constants import INVOICE_NUMBER_PREFIX

TWO_PLACES = Decimal('0.01')


def to_money(value) -> Decimal:
    """Coerce a number or numeric string to a two-place Decimal."""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def line_amount(quantity, unit_price) -> Decimal:
    return to_money(Decimal(int(quantity)) * Decimal(str(unit_price)))


def invoice_total(line_items) -> Decimal:
    """Sum of quantity * unit price over (quantity, unit_price) pairs."""
    total = sum(
        (Decimal(int(quantity)) * Decimal(str(unit_price)) for quantity, unit_price in line_items),
        Decimal('0'),
    )
    return to_money(total)


def invoice_prefix(issue_date) -> str:
    return f"{INVOICE_NUMBER_PREFIX}-{issue_date.strftime('%Y%m')}-"


def next_invoice_number(school_id, issue_date) -> str:
    """
    Return the next invoice number for a school and issue month.

    Numbers look like INV-202409-0001; the sequence restarts every month and
    continues from the highest number already issued for that month.
    """
    prefix = invoice_prefix(issue_date)
    numbers = [
        number for (number,) in Invoice.query
        .with_entities(Invoice.invoice_number)
        .filter(Invoice.school_id == school_id, Invoice.invoice_number.like(f"{prefix}%"))
        .all()
    ]

    last_sequence = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            last_sequence = max(last_sequence, int(suffix))

    return f"{prefix}{last_sequence + 1:04d}"
