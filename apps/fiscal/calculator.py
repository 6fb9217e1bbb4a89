"""
Tunisian document arithmetic: line totals, discount, TVA, FODEC, timbre
fiscal and retenue à la source.

Everything here is pure Decimal arithmetic with no database access, so
serializers, conversions and exports all share one set of rules.
"""
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def _fiscal(key):
    return settings.FISCAL[key]


def to_decimal(value):
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value, places=None):
    """Round half-up to ``places`` decimals (millimes by default)"""
    if places is None:
        places = _fiscal('AMOUNT_DECIMALS')
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def compute_line(quantity, unit_price, tva_rate=None, discount_percent=0):
    """
    Totals of one document line.

    ``total_ht`` is the pre-tax amount after the line discount,
    ``total_ttc`` adds the line TVA.
    """
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    tva_rate = _fiscal('DEFAULT_TVA_RATE') if tva_rate is None else to_decimal(tva_rate)
    discount_percent = to_decimal(discount_percent)

    gross = quantity * unit_price
    total_ht = gross * (1 - discount_percent / HUNDRED)
    total_tva = total_ht * tva_rate / HUNDRED
    return {
        'total_ht': quantize(total_ht),
        'total_tva': quantize(total_tva),
        'total_ttc': quantize(total_ht + total_tva),
    }


def calculate_fodec(amount_ht, rate):
    """FODEC levy on a pre-tax amount. A rate of 0 disables it."""
    rate = to_decimal(rate)
    if rate <= 0:
        return quantize(ZERO)
    return quantize(to_decimal(amount_ht) * rate / HUNDRED)


def compute_document_totals(lines, discount_percent=0, fodec_rate=0, timbre=0):
    """
    Header totals of a commercial document.

    ``lines`` is an iterable of mappings with ``quantity``, ``unit_price`` and
    optionally ``tva_rate`` and ``discount_percent``. The document discount
    applies to the sum of line HT amounts and reduces each line's TVA base
    proportionally. FODEC is charged on the discounted HT amount and the
    timbre is a flat amount added last.
    """
    discount_percent = to_decimal(discount_percent)
    factor = 1 - discount_percent / HUNDRED

    subtotal = ZERO
    tva = ZERO
    for line in lines:
        line_totals = compute_line(
            line.get('quantity'),
            line.get('unit_price'),
            line.get('tva_rate'),
            line.get('discount_percent', 0),
        )
        rate = line.get('tva_rate')
        rate = _fiscal('DEFAULT_TVA_RATE') if rate is None else to_decimal(rate)
        subtotal += line_totals['total_ht']
        tva += line_totals['total_ht'] * factor * rate / HUNDRED

    discount_amount = quantize(subtotal * discount_percent / HUNDRED)
    after_discount = subtotal - discount_amount
    tva_amount = quantize(tva)
    fodec_amount = calculate_fodec(after_discount, fodec_rate)
    timbre_amount = quantize(timbre)
    total = after_discount + tva_amount + fodec_amount + timbre_amount

    return {
        'subtotal': quantize(subtotal),
        'discount_amount': discount_amount,
        'tva_amount': tva_amount,
        'fodec_amount': fodec_amount,
        'timbre_amount': timbre_amount,
        'total': quantize(total),
    }


def calculate_retenue(total):
    """
    Retenue à la source withheld on a supplier payment: a percentage of the
    TTC amount once it reaches the threshold, nothing below it.
    """
    total = to_decimal(total)
    if total < _fiscal('RETENUE_THRESHOLD'):
        return quantize(ZERO)
    return quantize(total * _fiscal('RETENUE_RATE') / HUNDRED)


def net_to_pay(total):
    total = to_decimal(total)
    return quantize(total - calculate_retenue(total))
