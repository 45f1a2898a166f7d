"""
Payment tables: payment attempts and their event log
"""
from sqlalchemy import Column, DateTime, DECIMAL, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class Payment(Base):
    __tablename__ = "payments"

    id = uuid_pk()
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    reference = Column(String(40), nullable=False, unique=True)
    amount = Column(DECIMAL(12, 2), nullable=False)
    fee_amount = Column(DECIMAL(12, 2))
    status = Column(String(30), nullable=False, server_default="PENDING", index=True)
    provider = Column(String(30))
    channel = Column(String(30), nullable=False, server_default="paystack")
    init_payload = Column(JSONB)
    provider_payload = Column(JSONB)
    paid_at = Column(DateTime(timezone=True))
    created_at = created_at_column()
    updated_at = updated_at_column()


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = uuid_pk()
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(60), nullable=False, index=True)
    data = Column(JSONB)
    created_at = created_at_column()
