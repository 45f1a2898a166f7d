"""
Refund Domain Models
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from marketplace.domain.base import DomainModel


class RefundStatus(str, Enum):
    REQUESTED = "REQUESTED"
    SUPPLIER_REVIEW = "SUPPLIER_REVIEW"
    SUPPLIER_ACCEPTED = "SUPPLIER_ACCEPTED"
    SUPPLIER_REJECTED = "SUPPLIER_REJECTED"
    ESCALATED = "ESCALATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"
    CLOSED = "CLOSED"


class RefundItem(DomainModel):
    id: Optional[str] = None
    refund_id: Optional[str] = None
    order_item_id: str
    qty: int = 1


class Refund(DomainModel):
    id: str
    order_id: str
    purchase_order_id: str
    supplier_id: Optional[str] = None
    status: str = RefundStatus.SUPPLIER_REVIEW.value
    requested_by_user_id: Optional[str] = None
    reason: Optional[str] = None
    fault_party: Optional[str] = None
    items_amount: Decimal = Decimal("0.00")
    tax_amount: Decimal = Decimal("0.00")
    service_fee_base_amount: Decimal = Decimal("0.00")
    service_fee_comms_amount: Decimal = Decimal("0.00")
    service_fee_gateway_amount: Decimal = Decimal("0.00")
    total_amount: Decimal = Decimal("0.00")
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[RefundItem] = Field(default_factory=list)


class RefundItemRef(DomainModel):
    order_item_id: str


class RefundCreate(DomainModel):
    order_id: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    evidence_urls: List[str] = Field(default_factory=list)
    purchase_order_id: Optional[str] = None
    order_item_ids: List[str] = Field(default_factory=list)
    items: List[RefundItemRef] = Field(default_factory=list)
    fault_party: Optional[str] = None

    def selected_item_ids(self) -> List[str]:
        ids = list(self.order_item_ids) + [item.order_item_id for item in self.items]
        return list(dict.fromkeys(i for i in ids if i))


class RefundAction(DomainModel):
    action: str
    note: Optional[str] = None
