"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from marketplace.repositories.product_repository import ProductRepository, CategoryRepository
from marketplace.repositories.offer_repository import OfferRepository
from marketplace.repositories.order_repository import OrderRepository
from marketplace.repositories.payment_repository import PaymentRepository
from marketplace.repositories.purchase_order_repository import PurchaseOrderRepository
from marketplace.repositories.refund_repository import RefundRepository
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.repositories.setting_repository import SettingRepository
from marketplace.repositories.supplier_repository import SupplierRepository
from marketplace.repositories.user_repository import UserRepository, SessionRepository

__all__ = [
    'ProductRepository',
    'CategoryRepository',
    'OfferRepository',
    'OrderRepository',
    'PaymentRepository',
    'PurchaseOrderRepository',
    'RefundRepository',
    'NotificationRepository',
    'SettingRepository',
    'SupplierRepository',
    'UserRepository',
    'SessionRepository',
]
