"""
Catalog tables: categories, products, variants, suppliers and their offers
"""
from sqlalchemy import Boolean, Column, DateTime, DECIMAL, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class Category(Base):
    __tablename__ = "categories"
    # Names stay unique among live rows only, so a deleted name can be reused
    __table_args__ = (
        Index("uq_categories_live_name", "name", unique=True, postgresql_where=text("deleted_at IS NULL")),
    )

    id = uuid_pk()
    name = Column(String(120), nullable=False)
    slug = Column(String(140), index=True)
    parent_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), index=True)
    created_at = created_at_column()
    updated_at = updated_at_column()
    deleted_at = Column(DateTime(timezone=True))


class Product(Base):
    __tablename__ = "products"

    id = uuid_pk()
    title = Column(String(255), nullable=False)
    description = Column(Text)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), index=True)

    # Admin fallback price, used only when no supplier offer is sellable
    retail_price = Column(DECIMAL(12, 2))
    is_active = Column(Boolean, nullable=False, default=True, server_default="true", index=True)

    created_at = created_at_column()
    updated_at = updated_at_column()
    deleted_at = Column(DateTime(timezone=True))


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = uuid_pk()
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(100), unique=True)
    retail_price = Column(DECIMAL(12, 2))
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = created_at_column()
    updated_at = updated_at_column()


class ProductVariantOption(Base):
    """Attribute/value pairs identifying a variant (Color: Red, Size: L)"""
    __tablename__ = "product_variant_options"
    __table_args__ = (UniqueConstraint("variant_id", "attribute_id", name="uq_variant_attribute"),)

    id = uuid_pk()
    variant_id = Column(String(36), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    attribute_id = Column(String(36), nullable=False)
    value_id = Column(String(36), nullable=False)


class Supplier(Base):
    __tablename__ = "suppliers"

    id = uuid_pk()
    name = Column(String(255), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    paystack_subaccount_code = Column(String(64))
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    created_at = created_at_column()


class SupplierProductOffer(Base):
    """Supplier offer for the base product (no variant)"""
    __tablename__ = "supplier_product_offers"
    __table_args__ = (UniqueConstraint("supplier_id", "product_id", name="uq_supplier_product_offer"),)

    id = uuid_pk()
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    base_price = Column(DECIMAL(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN", server_default="NGN")
    available_qty = Column(Integer, nullable=False, default=0, server_default="0")
    in_stock = Column(Boolean, nullable=False, default=True, server_default="true")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    lead_days = Column(Integer)
    created_at = created_at_column()
    updated_at = updated_at_column()


class SupplierVariantOffer(Base):
    """Supplier offer for one product variant"""
    __tablename__ = "supplier_variant_offers"
    __table_args__ = (UniqueConstraint("supplier_id", "variant_id", name="uq_supplier_variant_offer"),)

    id = uuid_pk()
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_id = Column(String(36), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN", server_default="NGN")
    available_qty = Column(Integer, nullable=False, default=0, server_default="0")
    in_stock = Column(Boolean, nullable=False, default=True, server_default="true")
    is_active = Column(Boolean, nullable=False, default=True, server_default="true")
    lead_days = Column(Integer)
    created_at = created_at_column()
    updated_at = updated_at_column()
