"""
Database table definitions (SQLAlchemy declarative)

Repositories query these tables with raw SQL; the models define the schema
that scripts/init_db.py creates.
"""
from .account import User, UserSession, Notification, Setting
from .catalog import (
    Category,
    Product,
    ProductVariant,
    ProductVariantOption,
    Supplier,
    SupplierProductOffer,
    SupplierVariantOffer,
)
from .order import Address, Order, OrderItem, OrderActivity
from .payment import Payment, PaymentEvent
from .fulfillment import PurchaseOrder, PurchaseOrderItem, SupplierLedgerEntry
from .refund import Refund, RefundItem, RefundEvent

__all__ = [
    "User",
    "UserSession",
    "Notification",
    "Setting",
    "Category",
    "Product",
    "ProductVariant",
    "ProductVariantOption",
    "Supplier",
    "SupplierProductOffer",
    "SupplierVariantOffer",
    "Address",
    "Order",
    "OrderItem",
    "OrderActivity",
    "Payment",
    "PaymentEvent",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "SupplierLedgerEntry",
    "Refund",
    "RefundItem",
    "RefundEvent",
]
