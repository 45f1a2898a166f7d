"""
Checkout Service - order totals: tax and service fees

Service fee = base platform fee + communications fee (one unit per supplier
involved) + an estimate of the Paystack processing fee.
"""
from decimal import Decimal
from typing import List, Optional

from marketplace.core.money import CURRENCY, estimate_paystack_fee, round2, to_decimal
from marketplace.domain.pricing import CheckoutSummary, Quote, QuoteItem
from marketplace.services.pricing_service import PricingService
from marketplace.services.settings_service import SettingsService


def compute_tax(subtotal: Decimal, tax_mode: str, tax_rate_pct: Decimal):
    """
    Tax for a subtotal

    Returns:
        (tax portion, amount added on top of the subtotal)
        ADDED charges rate% on top; INCLUDED reports the portion already
        inside the subtotal; NONE is zero.
    """
    rate = to_decimal(tax_rate_pct)
    if rate <= 0 or tax_mode == "NONE":
        return Decimal("0.00"), Decimal("0.00")
    if tax_mode == "ADDED":
        tax = round2(subtotal * rate / 100)
        return tax, tax
    included = round2(subtotal - subtotal / (1 + rate / 100))
    return included, Decimal("0.00")


def compute_summary(
    subtotal: Decimal,
    suppliers_count: int,
    fee_settings: dict
) -> CheckoutSummary:
    """
    Totals for a basket

    Args:
        subtotal: Retail subtotal
        suppliers_count: Distinct suppliers the basket is allocated to
        fee_settings: SettingsService.public_settings() output
    """
    subtotal = round2(subtotal)
    tax_mode = fee_settings["tax_mode"]
    tax_rate = to_decimal(fee_settings["tax_rate_pct"])
    tax, tax_added = compute_tax(subtotal, tax_mode, tax_rate)

    if subtotal > 0:
        base_fee = round2(fee_settings["base_service_fee_ngn"])
        comms_fee = round2(to_decimal(fee_settings["comms_unit_cost_ngn"]) * suppliers_count)
        gateway_fee = estimate_paystack_fee(subtotal + tax_added + base_fee + comms_fee)
    else:
        base_fee = comms_fee = gateway_fee = Decimal("0.00")

    service_fee_total = round2(base_fee + comms_fee + gateway_fee)

    return CheckoutSummary(
        currency=CURRENCY,
        subtotal=subtotal,
        tax_mode=tax_mode,
        tax_rate_pct=tax_rate,
        tax=tax,
        tax_added=tax_added,
        service_fee_base=base_fee,
        service_fee_comms=comms_fee,
        service_fee_gateway=gateway_fee,
        service_fee_total=service_fee_total,
        suppliers_count=suppliers_count,
        total=round2(subtotal + tax_added + service_fee_total),
    )


class CheckoutService:

    def __init__(
        self,
        pricing_service: Optional[PricingService] = None,
        settings_service: Optional[SettingsService] = None
    ):
        self.settings_service = settings_service or SettingsService()
        self.pricing_service = pricing_service or PricingService(settings_service=self.settings_service)

    def summarize_quote(self, quote: Quote) -> CheckoutSummary:
        return compute_summary(
            quote.subtotal,
            len(quote.supplier_ids),
            self.settings_service.public_settings(),
        )

    def summary(self, items: List[QuoteItem]) -> dict:
        """Quote the basket and compute its totals"""
        quote = self.pricing_service.quote(items)
        summary = self.summarize_quote(quote)
        return {"summary": summary, "quote": quote}
