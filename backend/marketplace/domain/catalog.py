"""
Catalog Domain Models

Categories, products, variants and the supplier offers that price them.

Date: 2026-02-11
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from marketplace.domain.base import DomainModel


class OfferKind(str, Enum):
    """Which offer table a supplier offer comes from"""
    BASE = "BASE"
    VARIANT = "VARIANT"


class Category(DomainModel):
    id: str = Field(..., description="Category ID")
    name: str = Field(..., description="Display name")
    slug: Optional[str] = Field(None, description="URL slug")
    parent_id: Optional[str] = Field(None, description="Parent category ID")
    created_at: Optional[datetime] = None


class CategoryCreate(DomainModel):
    name: str = Field(..., min_length=2, description="Category name")
    parent_id: Optional[str] = Field(None, description="Parent category ID")


class CategoryUpdate(DomainModel):
    name: Optional[str] = Field(None, min_length=2)
    parent_id: Optional[str] = None


class VariantOption(DomainModel):
    """One attribute/value pair that identifies a variant (e.g. Size: L)"""
    attribute_id: str
    value_id: str

    @property
    def pair(self) -> str:
        return f"{self.attribute_id}:{self.value_id}"


class ProductVariant(DomainModel):
    id: str = Field(..., description="Variant ID")
    product_id: str = Field(..., description="Parent product ID")
    sku: Optional[str] = Field(None, description="Variant SKU")
    retail_price: Optional[Decimal] = Field(None, description="Admin retail price fallback")
    is_active: bool = True
    options: List[VariantOption] = Field(default_factory=list)

    def matches(self, selected: List[VariantOption]) -> bool:
        """True when every selected attribute/value pair is an option of this variant"""
        if not selected:
            return False
        own = {option.pair for option in self.options}
        return all(option.pair in own for option in selected)


class Product(DomainModel):
    """
    Product domain model

    retail_price is only a fallback; the price a shopper pays normally comes
    from the cheapest supplier offer plus the platform margin.
    """
    id: str = Field(..., description="Product ID")
    title: str = Field(..., description="Product title")
    description: Optional[str] = None
    category_id: Optional[str] = None
    retail_price: Optional[Decimal] = Field(None, description="Admin retail price fallback")
    is_active: bool = True
    created_at: Optional[datetime] = None
    variants: List[ProductVariant] = Field(default_factory=list)

    def variant(self, variant_id: Optional[str]) -> Optional[ProductVariant]:
        if not variant_id:
            return None
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


class Offer(DomainModel):
    """
    A supplier's priced, quantity-limited listing for a product (BASE)
    or for one of its variants (VARIANT).
    """
    id: str = Field(..., description="Offer ID")
    kind: OfferKind = Field(..., description="BASE or VARIANT")
    supplier_id: str = Field(..., description="Supplier ID")
    supplier_name: Optional[str] = None
    product_id: str
    variant_id: Optional[str] = None
    unit_price: Decimal = Field(..., description="Supplier unit price (NGN)")
    available_qty: int = 0
    in_stock: bool = True
    is_active: bool = True
    lead_days: Optional[int] = None

    @property
    def sellable(self) -> bool:
        """Active, in stock, with positive quantity and price"""
        return (
            self.is_active
            and self.in_stock
            and self.available_qty > 0
            and self.unit_price > 0
        )


class ProductCreate(DomainModel):
    title: str = Field(..., min_length=2, description="Product title")
    description: Optional[str] = None
    category_id: Optional[str] = None
    retail_price: Optional[Decimal] = Field(None, description="Admin retail price fallback")
    is_active: bool = True


class ProductUpdate(DomainModel):
    """Partial product edit; only the fields sent are written"""
    title: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    category_id: Optional[str] = None
    retail_price: Optional[Decimal] = None
    is_active: Optional[bool] = None


class VariantCreate(DomainModel):
    sku: Optional[str] = None
    retail_price: Optional[Decimal] = None
    is_active: bool = True
    options: List[VariantOption] = Field(default_factory=list)


class VariantUpdate(DomainModel):
    """
    Partial variant edit

    When options is sent it replaces the variant's whole option set.
    """
    sku: Optional[str] = None
    retail_price: Optional[Decimal] = None
    is_active: Optional[bool] = None
    options: Optional[List[VariantOption]] = None


class OfferTerms(DomainModel):
    """Price, stock and lead time a supplier lists an offer with"""
    unit_price: Decimal = Field(..., description="Supplier unit price (NGN)")
    available_qty: int = 0
    in_stock: bool = True
    is_active: bool = True
    lead_days: Optional[int] = None


class SupplierOfferUpsert(OfferTerms):
    """A supplier's own offer; variant_id set means a variant offer"""
    product_id: str
    variant_id: Optional[str] = None


class AdminOfferCreate(OfferTerms):
    """An offer created by an admin on a supplier's behalf"""
    supplier_id: str
    variant_id: Optional[str] = None


class OfferUpdate(DomainModel):
    unit_price: Optional[Decimal] = None
    available_qty: Optional[int] = None
    in_stock: Optional[bool] = None
    is_active: Optional[bool] = None
    lead_days: Optional[int] = None
