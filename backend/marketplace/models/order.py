"""
Order tables: orders, their supplier-allocated items and activity log
"""
from sqlalchemy import Column, DateTime, DECIMAL, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class Address(Base):
    __tablename__ = "addresses"

    id = uuid_pk()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    house_number = Column(String(40))
    street_name = Column(String(255))
    town = Column(String(120))
    city = Column(String(120))
    state = Column(String(120))
    post_code = Column(String(20))
    country = Column(String(80), default="Nigeria")
    created_at = created_at_column()


class Order(Base):
    __tablename__ = "orders"

    id = uuid_pk()
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(40), nullable=False, default="CREATED", server_default="CREATED", index=True)

    # Amounts (NGN)
    subtotal = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    tax = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_base = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_comms = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_gateway = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    service_fee_total = Column(DECIMAL(12, 2), nullable=False, server_default="0")
    total = Column(DECIMAL(12, 2), nullable=False, server_default="0")

    # Shipping
    shipping_address = Column(JSONB)
    shipping_address_id = Column(String(36), ForeignKey("addresses.id", ondelete="SET NULL"))
    notes = Column(Text)

    paid_at = Column(DateTime(timezone=True))
    created_at = created_at_column()
    updated_at = updated_at_column()

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = uuid_pk()
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(String(36), ForeignKey("product_variants.id"))

    title = Column(String(255), nullable=False)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(DECIMAL(12, 2), nullable=False)
    status = Column(String(40), nullable=False, server_default="PENDING")
    selected_options = Column(JSONB)

    # Supplier allocation snapshot
    chosen_supplier_offer_id = Column(String(36))
    chosen_supplier_id = Column(String(36), ForeignKey("suppliers.id"), index=True)
    chosen_supplier_unit_price = Column(DECIMAL(12, 2))

    created_at = created_at_column()

    order = relationship("Order", back_populates="items")


class OrderActivity(Base):
    __tablename__ = "order_activities"

    id = uuid_pk()
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(60), nullable=False, index=True)
    message = Column(Text)
    meta = Column(JSONB)
    created_at = created_at_column()
