"""
Refund tables: one refund request per purchase order, its items and events
"""
from sqlalchemy import Column, DECIMAL, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class Refund(Base):
    __tablename__ = "refunds"

    id = uuid_pk()
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    purchase_order_id = Column(String(36), ForeignKey("purchase_orders.id"), nullable=False, unique=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), index=True)
    status = Column(String(30), nullable=False, server_default="SUPPLIER_REVIEW", index=True)
    requested_by_user_id = Column(String(36), ForeignKey("users.id"), index=True)
    reason = Column(Text)
    fault_party = Column(String(30))

    items_amount = Column(DECIMAL(12, 2), nullable=False)
    tax_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_base_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_comms_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_gateway_amount = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    total_amount = Column(DECIMAL(12, 2), nullable=False)

    meta = Column(JSONB)
    created_at = created_at_column()
    updated_at = updated_at_column()


class RefundItem(Base):
    __tablename__ = "refund_items"

    id = uuid_pk()
    refund_id = Column(String(36), ForeignKey("refunds.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=False)
    qty = Column(Integer, nullable=False, server_default="1")


class RefundEvent(Base):
    __tablename__ = "refund_events"

    id = uuid_pk()
    refund_id = Column(String(36), ForeignKey("refunds.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    message = Column(Text)
    meta = Column(JSONB)
    created_at = created_at_column()
