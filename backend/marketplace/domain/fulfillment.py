"""
Purchase Order Domain Models

A purchase order (PO) is the supplier-facing slice of a customer order:
the items allocated to one supplier, used for fulfillment and payouts.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from marketplace.domain.base import DomainModel


class PurchaseOrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PACKED = "PACKED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELED = "CANCELED"
    REFUND_REQUESTED = "REFUND_REQUESTED"
    REFUNDED = "REFUNDED"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"


class PurchaseOrderItem(DomainModel):
    id: str
    purchase_order_id: str
    order_item_id: str
    title: Optional[str] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(None, description="Retail unit price")
    supplier_unit_price: Optional[Decimal] = None
    external_ref: Optional[str] = None
    external_status: Optional[str] = None


class PurchaseOrder(DomainModel):
    id: str
    order_id: str
    supplier_id: str
    supplier_order_ref: str = Field(..., description="SPO-XXXX-XXXX")
    subtotal: Decimal = Field(..., description="Retail value of the PO items")
    platform_fee: Decimal = Decimal("0.00")
    supplier_amount: Decimal = Field(..., description="Amount owed to the supplier")
    status: str = PurchaseOrderStatus.PENDING.value
    payout_status: str = PayoutStatus.PENDING.value
    cancel_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    packed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    paid_out_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[PurchaseOrderItem] = Field(default_factory=list)


class PurchaseOrderStatusUpdate(DomainModel):
    status: str
    reason: Optional[str] = None


class LedgerEntry(DomainModel):
    id: str
    supplier_id: str
    type: str = Field(..., description="CREDIT or DEBIT")
    amount: Decimal
    currency: str = "NGN"
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None
