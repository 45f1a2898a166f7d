"""
Pricing Domain Models

Request/response shapes for availability, quotes, cart pricing and the
checkout summary.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from marketplace.domain.base import DomainModel
from marketplace.domain.catalog import OfferKind, VariantOption


class AvailabilityLine(DomainModel):
    product_id: str
    variant_id: Optional[str] = None
    total_available: int = 0
    cheapest_supplier_unit: Optional[Decimal] = None


class QuoteItem(DomainModel):
    key: Optional[str] = None
    kind: Optional[OfferKind] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    qty: int = 0


class QuoteRequest(DomainModel):
    items: List[QuoteItem] = Field(default_factory=list)


class Allocation(DomainModel):
    """Units of one line taken from one supplier offer"""
    offer_id: str
    offer_kind: OfferKind
    supplier_id: str
    supplier_name: Optional[str] = None
    qty: int
    supplier_unit_price: Decimal = Field(..., description="What the supplier charges per unit")
    unit_price: Decimal = Field(..., description="Retail unit price (margin applied)")
    line_total: Decimal


class QuoteLine(DomainModel):
    key: str
    product_id: str
    variant_id: Optional[str] = None
    kind: OfferKind
    qty_requested: int
    qty_priced: int = 0
    allocations: List[Allocation] = Field(default_factory=list)
    line_total: Decimal = Decimal("0.00")
    min_unit: Decimal = Decimal("0")
    max_unit: Decimal = Decimal("0")
    average_unit: Decimal = Decimal("0.00")
    currency: str = "NGN"
    warnings: List[str] = Field(default_factory=list)

    @property
    def fully_priced(self) -> bool:
        return self.qty_priced >= self.qty_requested


class Quote(DomainModel):
    currency: str = "NGN"
    margin_percent: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0.00")
    lines: List[QuoteLine] = Field(default_factory=list)

    @property
    def supplier_ids(self) -> List[str]:
        seen = []
        for line in self.lines:
            for allocation in line.allocations:
                if allocation.supplier_id not in seen:
                    seen.append(allocation.supplier_id)
        return seen


class CartItemRequest(DomainModel):
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    selected_options: List[VariantOption] = Field(default_factory=list)
    quantity: int = 1
    unit_price_client: Optional[Decimal] = None
    order_id: Optional[str] = None
    title: Optional[str] = None


class CartPricing(DomainModel):
    supplier_id: Optional[str] = None
    offer_id: Optional[str] = None
    supplier_price: Optional[Decimal] = None
    margin_percent: Decimal = Decimal("0")
    source: str = Field(..., description="VARIANT_OFFER, BASE_OFFER, BASE_OFFER_FALLBACK or RETAIL_FALLBACK")


class CartLine(DomainModel):
    product_id: str
    variant_id: Optional[str] = None
    title: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    selected_options: List[VariantOption] = Field(default_factory=list)
    pricing: CartPricing


class CheckoutSummary(DomainModel):
    currency: str = "NGN"
    subtotal: Decimal
    tax_mode: str
    tax_rate_pct: Decimal
    tax: Decimal = Field(..., description="Tax portion of the order")
    tax_added: Decimal = Field(..., description="Tax added on top of the subtotal (ADDED mode only)")
    service_fee_base: Decimal
    service_fee_comms: Decimal
    service_fee_gateway: Decimal
    service_fee_total: Decimal
    suppliers_count: int
    total: Decimal
