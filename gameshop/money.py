from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Coerce a DB or JSON number to Decimal without going through float repr."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


def round2(value) -> Decimal:
    """Round to cents, half-up. Every currency step goes through here."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
