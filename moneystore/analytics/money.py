"""
Fixed-Point Money Helpers

DESIGN DECISION: Every monetary value inside moneystore is a Decimal.
Floats are accepted at the boundary and converted through their shortest
repr, so 0.1 becomes Decimal("0.1") rather than 0.1000000000000000055...
Sums are exact; rounding happens only where a granularity is declared.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import BaseModel, Field


Number = Union[int, float, Decimal]

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class CurrencyConfig(BaseModel):
    """Display configuration for a currency."""

    code: str = Field(..., pattern="^[A-Z]{3}$")
    symbol: str
    name: str
    decimals: int = Field(..., ge=0, le=4)


CURRENCIES: dict[str, CurrencyConfig] = {
    "INR": CurrencyConfig(code="INR", symbol="₹", name="Indian Rupee", decimals=2),
    "USD": CurrencyConfig(code="USD", symbol="$", name="US Dollar", decimals=2),
    "EUR": CurrencyConfig(code="EUR", symbol="€", name="Euro", decimals=2),
    "GBP": CurrencyConfig(code="GBP", symbol="£", name="British Pound", decimals=2),
    "JPY": CurrencyConfig(code="JPY", symbol="¥", name="Japanese Yen", decimals=0),
}


def to_decimal(value: Optional[Number]) -> Decimal:
    """
    Convert a stored or caller-supplied number to Decimal.

    None maps to zero, matching how screens treat missing amounts.
    Raises ValueError for bools, strings and non-finite values.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError("Booleans are not monetary values")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        try:
            result = Decimal(repr(value))
        except InvalidOperation as e:
            raise ValueError(f"Not a finite number: {value!r}") from e
    else:
        raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def quantize(value: Number, step: Decimal = CENT) -> Decimal:
    """Round half-up to the given step (0.01 by default)."""
    return to_decimal(value).quantize(step, rounding=ROUND_HALF_UP)


def get_currency_config(currency_code: str) -> CurrencyConfig:
    config = CURRENCIES.get(currency_code.upper())
    if config is None:
        raise ValueError(f"Unsupported currency code: {currency_code}")
    return config


def round_currency(amount: Number, currency_code: str) -> Decimal:
    """Round to the number of minor units the currency uses."""
    config = get_currency_config(currency_code)
    return quantize(amount, Decimal(1).scaleb(-config.decimals))


def format_currency(amount: Number, currency_code: str) -> str:
    """
    Format an amount for display, e.g. ``-₹1,234.50`` or ``¥1,000``.

    Grouping is always by thousands; locale-specific grouping is a
    presentation concern that belongs to the UI.
    """
    config = get_currency_config(currency_code)
    rounded = round_currency(amount, currency_code)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{config.symbol}{abs(rounded):,.{config.decimals}f}"


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Division that yields zero instead of raising on a zero denominator."""
    if denominator == 0:
        return ZERO
    return numerator / denominator
