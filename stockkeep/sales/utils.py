"""Document numbers and money totals for quotes and sales orders"""
import random
import time
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

CENT = Decimal('0.01')


def round_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity, unit_price):
    return round_money(Decimal(quantity) * Decimal(unit_price))


def calculate_totals(lines, tax_rate=None):
    """
    Subtotal, tax and total for (quantity, unit_price) pairs.
    Tax is charged on the rounded subtotal at STOCKKEEP_TAX_RATE unless a rate is given.
    """
    if tax_rate is None:
        tax_rate = settings.STOCKKEEP_TAX_RATE
    subtotal = round_money(sum((line_total(quantity, price) for quantity, price in lines), Decimal('0')))
    tax = round_money(subtotal * Decimal(tax_rate))
    return {'subtotal': subtotal, 'tax': tax, 'total': subtotal + tax}


def _candidate_number(prefix):
    millis = str(int(time.time() * 1000))
    return f"{prefix}-{millis[-6:]}-{random.randint(0, 999):03d}"


def generate_document_number(prefix, model, field_name):
    """Generate a unique `<prefix>-<6 clock digits>-<3 random digits>` number for `model.field_name`"""
    number = _candidate_number(prefix)
    # Ensure uniqueness
    while model.objects.filter(**{field_name: number}).exists():
        number = _candidate_number(prefix)
    return number
