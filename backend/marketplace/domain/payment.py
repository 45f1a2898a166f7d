"""
Payment Domain Models
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from marketplace.domain.base import DomainModel


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    REQUIRES_ACTION = "REQUIRES_ACTION"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    REFUNDED = "REFUNDED"


# Statuses after which verify just reports back
CLOSED_STATUSES = (
    PaymentStatus.FAILED.value,
    PaymentStatus.CANCELED.value,
    PaymentStatus.REFUNDED.value,
)


class Payment(DomainModel):
    """One payment attempt for an order"""
    id: str
    order_id: str
    reference: str = Field(..., description="8-char Crockford base32 reference")
    amount: Decimal
    fee_amount: Optional[Decimal] = None
    status: str = PaymentStatus.PENDING.value
    provider: Optional[str] = None
    channel: str = "paystack"
    init_payload: Optional[dict] = None
    provider_payload: Optional[dict] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def authorization_url(self) -> Optional[str]:
        payload = self.init_payload or {}
        return payload.get("authorization_url") or (payload.get("data") or {}).get("authorization_url")


class PaymentInitRequest(DomainModel):
    order_id: str
    channel: str = "paystack"


class PaymentVerifyRequest(DomainModel):
    order_id: Optional[str] = None
    reference: Optional[str] = None
