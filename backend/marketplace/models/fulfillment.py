"""
Fulfillment tables: supplier purchase orders and the supplier payout ledger
"""
from sqlalchemy import Column, DateTime, DECIMAL, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    __table_args__ = (UniqueConstraint("order_id", "supplier_id", name="uq_purchase_order_supplier"),)

    id = uuid_pk()
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    supplier_order_ref = Column(String(20), nullable=False, unique=True)

    subtotal = Column(DECIMAL(12, 2), nullable=False)
    platform_fee = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    supplier_amount = Column(DECIMAL(12, 2), nullable=False)

    status = Column(String(30), nullable=False, server_default="PENDING", index=True)
    payout_status = Column(String(30), nullable=False, server_default="PENDING")
    cancel_reason = Column(Text)

    # Status timestamps
    confirmed_at = Column(DateTime(timezone=True))
    packed_at = Column(DateTime(timezone=True))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    canceled_at = Column(DateTime(timezone=True))
    paid_out_at = Column(DateTime(timezone=True))

    created_at = created_at_column()
    updated_at = updated_at_column()

    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan")


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = uuid_pk()
    purchase_order_id = Column(String(36), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    external_ref = Column(String(100))
    external_status = Column(String(40))

    purchase_order = relationship("PurchaseOrder", back_populates="items")


class SupplierLedgerEntry(Base):
    __tablename__ = "supplier_ledger_entries"

    id = uuid_pk()
    supplier_id = Column(String(36), ForeignKey("suppliers.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # CREDIT | DEBIT
    amount = Column(DECIMAL(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, server_default="NGN")
    reference_type = Column(String(40))
    reference_id = Column(String(36), index=True)
    meta = Column(JSONB)
    created_at = created_at_column()
