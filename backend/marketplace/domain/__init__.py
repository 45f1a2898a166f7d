"""
Domain Layer - Business Entities

Pydantic models representing marketplace entities. Repositories return
these, services operate on them and routers serialize them with to_dict().
"""
from marketplace.domain.catalog import Category, Product, ProductVariant, Offer, OfferKind, VariantOption
from marketplace.domain.order import Order, OrderItem, OrderStatus
from marketplace.domain.payment import Payment, PaymentStatus
from marketplace.domain.fulfillment import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from marketplace.domain.refund import Refund, RefundItem, RefundStatus
from marketplace.domain.account import User, UserSession, Notification, Role
from marketplace.domain.setting import Setting
from marketplace.domain.bank import Bank

__all__ = [
    'Category', 'Product', 'ProductVariant', 'Offer', 'OfferKind', 'VariantOption',
    'Order', 'OrderItem', 'OrderStatus',
    'Payment', 'PaymentStatus',
    'PurchaseOrder', 'PurchaseOrderItem', 'PurchaseOrderStatus',
    'Refund', 'RefundItem', 'RefundStatus',
    'User', 'UserSession', 'Notification', 'Role',
    'Setting', 'Bank',
]
