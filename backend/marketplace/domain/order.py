"""
Order Domain Models

Customer orders, their supplier-allocated line items and activity log.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field

from marketplace.domain.base import DomainModel


class OrderStatus(str, Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    AWAITING_FULFILLMENT = "AWAITING_FULFILLMENT"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"


# Orders whose total counts as money spent
SPENT_STATUSES = (
    OrderStatus.PAID.value,
    OrderStatus.AWAITING_FULFILLMENT.value,
    OrderStatus.COMPLETED.value,
    OrderStatus.DELIVERED.value,
)


class OrderItem(DomainModel):
    """
    Order line item. One row per supplier allocation, so a line split across
    two suppliers becomes two items.
    """
    id: str = Field(..., description="Order item ID")
    order_id: str
    product_id: str
    variant_id: Optional[str] = None
    title: str
    unit_price: Decimal = Field(..., description="Retail unit price charged to the shopper", ge=0)
    quantity: int = Field(..., ge=1)
    line_total: Decimal = Field(..., ge=0)
    status: str = "PENDING"
    selected_options: Optional[Any] = None
    chosen_supplier_offer_id: Optional[str] = None
    chosen_supplier_id: Optional[str] = None
    chosen_supplier_unit_price: Optional[Decimal] = None
    created_at: Optional[datetime] = None

    @property
    def supplier_cost(self) -> Decimal:
        return (self.chosen_supplier_unit_price or Decimal("0")) * max(1, self.quantity)


class Order(DomainModel):
    id: str = Field(..., description="Order ID")
    user_id: str
    user_email: Optional[str] = None
    status: str = OrderStatus.CREATED.value
    subtotal: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    service_fee_base: Decimal = Decimal("0.00")
    service_fee_comms: Decimal = Decimal("0.00")
    service_fee_gateway: Decimal = Decimal("0.00")
    service_fee_total: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    shipping_address: Optional[dict] = None
    shipping_address_id: Optional[str] = None
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItem] = Field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return self.status in SPENT_STATUSES


class OrderLineInput(DomainModel):
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    offer_id: Optional[str] = None
    qty: int = 0
    selected_options: Optional[Any] = None


class OrderCreate(DomainModel):
    items: List[OrderLineInput] = Field(default_factory=list)
    shipping_address: Optional[dict] = None
    shipping_address_id: Optional[str] = None
    notes: Optional[str] = None


class OrderActivity(DomainModel):
    id: str
    order_id: str
    type: str
    message: Optional[str] = None
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None
