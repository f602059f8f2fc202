"""VAT and money helpers. Prices are stored pre-tax; tax is added at checkout."""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from shibr.core.config import settings

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round a number to two decimal places, half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
        }


def tax_rate() -> Decimal:
    return Decimal(settings.TAX_RATE)


def calculate_totals(subtotal) -> Totals:
    """
    Apply VAT to a pre-tax subtotal.

    total = round(subtotal * (1 + rate), 2) and tax is the difference, so
    subtotal + tax always equals total exactly.
    """
    subtotal = to_money(subtotal)
    total = to_money(subtotal * (1 + tax_rate()))
    return Totals(subtotal=subtotal, tax=total - subtotal, total=total)


def line_subtotal(price, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


def sum_lines(lines: Iterable[tuple]) -> Decimal:
    """Sum (price, quantity) pairs, rounding each line first."""
    return sum((line_subtotal(price, qty) for price, qty in lines), Decimal("0.00"))


def price_with_platform_fee(monthly_price: float, fee_percentage: float) -> float:
    """Shelf price shown to brands: monthly price plus the platform fee."""
    return float(to_money(Decimal(str(monthly_price)) * (1 + Decimal(str(fee_percentage)) / 100)))
