from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from stockledger.core.errors import InvalidQuantityError

QUANTITY_QUANT = Decimal("0.01")
ZERO_QUANTITY = Decimal("0.00")


def to_quantity(value: Decimal | int | float | str) -> Decimal:
    """Normalises stored or aggregated values to two places."""
    return Decimal(str(value)).quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)


def parse_quantity(value: Decimal | int | float | str) -> Decimal:
    """Caller-supplied quantities must already fit two places; nothing is rounded."""
    try:
        raw = Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidQuantityError("Quantity must be a number", quantity=str(value)) from exc
    if not raw.is_finite() or raw != raw.quantize(QUANTITY_QUANT):
        raise InvalidQuantityError("Quantity allows at most two decimal places", quantity=str(value))
    return raw.quantize(QUANTITY_QUANT)
