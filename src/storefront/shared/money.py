"""Decimal helpers for monetary amounts.

Amounts travel as floats on protean fields and over the wire. All arithmetic
converts them through ``str`` first so that ``0.1`` becomes ``Decimal("0.1")``
rather than its binary expansion. Rounding to the currency's minor unit is
applied only when a value is displayed.
"""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# ISO 4217 minor units; currencies not listed use 2
_MINOR_UNITS = {
    "JPY": 0,
    "KRW": 0,
    "CLP": 0,
    "VND": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
}

VALID_CURRENCIES = frozenset(
    {
        "USD",
        "EUR",
        "GBP",
        "JPY",
        "CAD",
        "AUD",
        "CHF",
        "CNY",
        "INR",
        "MXN",
        "BRL",
        "KRW",
        "SGD",
        "HKD",
        "NOK",
        "SEK",
        "DKK",
        "NZD",
        "ZAR",
        "TWD",
    }
)


def to_decimal(value) -> Decimal:
    """Convert an int, float, str or Decimal amount to Decimal. ``None`` is zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def non_negative(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def minor_units(currency: str) -> int:
    return _MINOR_UNITS.get(currency.upper(), 2)


def round_money(amount, currency: str = "USD") -> Decimal:
    """Round to the currency's minor unit, half away from zero."""
    exponent = Decimal(1).scaleb(-minor_units(currency))
    return to_decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP)


def format_money(amount, currency: str = "USD") -> str:
    return f"{round_money(amount, currency)} {currency.upper()}"
