"""
Money helpers for NGN amounts

All arithmetic is done on Decimal; amounts sent to Paystack are integers in
kobo (1/100 NGN).
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float, str]

CURRENCY = "NGN"
TWO_PLACES = Decimal("0.01")

# Paystack local card/transfer pricing
LOCAL_RATE = Decimal("0.015")
LOCAL_FLAT = Decimal("100")
LOCAL_FLAT_THRESHOLD = Decimal("2500")
LOCAL_CAP = Decimal("2000")
INTERNATIONAL_RATE = Decimal("0.039")
INTERNATIONAL_FLAT = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def round2(value: Number) -> Decimal:
    """Round to 2 decimal places, half up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor(value: Number) -> int:
    """Major units to minor units (naira -> kobo)."""
    return int((to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


to_kobo = to_minor


def to_major(minor: int) -> str:
    """Minor units to a 2-decimal major-unit string."""
    return f"{Decimal(int(minor)) / 100:.2f}"


def pct_of(amount: int, pct: Number) -> int:
    """Integer percentage of an integer amount, floored."""
    return math.floor(to_decimal(amount) * to_decimal(pct) / 100)


def apply_margin(supplier_price: Number, margin_percent: Number) -> Decimal:
    """Retail unit price from a supplier unit price and a margin percentage."""
    margin = max(to_decimal(margin_percent), Decimal("0"))
    return round2(to_decimal(supplier_price) * (1 + margin / 100))


def estimate_paystack_fee(amount: Number, international: bool = False) -> Decimal:
    """
    Estimate the Paystack processing fee for a charge in NGN.

    Local: 1.5% plus NGN 100 above NGN 2,500, capped at NGN 2,000.
    International: 3.9% plus NGN 100.
    """
    amount = to_decimal(amount)
    if amount <= 0:
        return Decimal("0.00")

    if international:
        return round2(amount * INTERNATIONAL_RATE + INTERNATIONAL_FLAT)

    fee = amount * LOCAL_RATE
    if amount > LOCAL_FLAT_THRESHOLD:
        fee += LOCAL_FLAT
    return round2(min(fee, LOCAL_CAP))
