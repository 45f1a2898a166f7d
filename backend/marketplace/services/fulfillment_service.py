"""
Fulfillment Service - supplier purchase orders and payouts

After an order is paid its items are split by chosen supplier into
purchase orders (POs). Suppliers move their POs through

    PENDING -> CONFIRMED -> PACKED -> SHIPPED -> DELIVERED

one step at a time, or cancel before shipping. Admins release the payout
of a delivered PO, which credits the supplier ledger.

Date: 2026-02-24
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from marketplace.core.auth import TokenUser, is_admin
from marketplace.core.database import transaction
from marketplace.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.core.money import round2
from marketplace.core.references import generate_supplier_order_ref
from marketplace.domain.fulfillment import PayoutStatus, PurchaseOrder, PurchaseOrderStatus, PurchaseOrderStatusUpdate
from marketplace.domain.order import Order, OrderItem, OrderStatus
from marketplace.repositories.order_repository import OrderRepository
from marketplace.repositories.purchase_order_repository import PurchaseOrderRepository
from marketplace.repositories.supplier_repository import SupplierRepository
from marketplace.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

REF_ATTEMPTS = 5

FLOW = [
    PurchaseOrderStatus.PENDING.value,
    PurchaseOrderStatus.CONFIRMED.value,
    PurchaseOrderStatus.PACKED.value,
    PurchaseOrderStatus.SHIPPED.value,
    PurchaseOrderStatus.DELIVERED.value,
]
CANCELABLE = (
    PurchaseOrderStatus.PENDING.value,
    PurchaseOrderStatus.CONFIRMED.value,
    PurchaseOrderStatus.PACKED.value,
)
TERMINAL = (
    PurchaseOrderStatus.DELIVERED.value,
    PurchaseOrderStatus.CANCELED.value,
)
STATUS_ALIASES = {
    "CANCELLED": PurchaseOrderStatus.CANCELED.value,
    "CREATED": PurchaseOrderStatus.PENDING.value,
    "FUNDED": PurchaseOrderStatus.PENDING.value,
    "PROCESSING": PurchaseOrderStatus.PENDING.value,
    "OUT_FOR_DELIVERY": PurchaseOrderStatus.SHIPPED.value,
}


def normalize_status(raw: Optional[str]) -> str:
    """Map a requested status (and its legacy spellings) onto the PO flow"""
    status = (raw or "").strip().upper()
    status = STATUS_ALIASES.get(status, status)
    if status not in FLOW and status != PurchaseOrderStatus.CANCELED.value:
        raise ValidationError(f"Unknown status: {raw}")
    return status


def can_transition(current: str, target: str) -> bool:
    """Stay put, advance one step, or cancel before shipping"""
    if current == target:
        return True
    if current in TERMINAL:
        return False
    if target == PurchaseOrderStatus.CANCELED.value:
        return current in CANCELABLE
    if current not in FLOW or target not in FLOW:
        return False
    return FLOW.index(target) == FLOW.index(current) + 1


def split_by_supplier(items: List[OrderItem]) -> Dict[str, List[OrderItem]]:
    groups: Dict[str, List[OrderItem]] = {}
    for item in items:
        if item.chosen_supplier_id:
            groups.setdefault(item.chosen_supplier_id, []).append(item)
    return groups


def po_amounts(items: List[OrderItem]) -> Dict[str, Decimal]:
    """Retail subtotal, supplier amount and the platform's share of one PO"""
    subtotal = round2(sum((item.line_total for item in items), Decimal("0")))
    supplier_amount = round2(sum((item.supplier_cost for item in items), Decimal("0")))
    return {
        "subtotal": subtotal,
        "supplier_amount": supplier_amount,
        "platform_fee": max(Decimal("0.00"), round2(subtotal - supplier_amount)),
    }


class FulfillmentService:

    def __init__(
        self,
        po_repo: Optional[PurchaseOrderRepository] = None,
        order_repo: Optional[OrderRepository] = None,
        supplier_repo: Optional[SupplierRepository] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.po_repo = po_repo or PurchaseOrderRepository()
        self.order_repo = order_repo or OrderRepository()
        self.supplier_repo = supplier_repo or SupplierRepository()
        self.notifications = notifications or NotificationService()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _new_ref(self, conn) -> str:
        for _ in range(REF_ATTEMPTS):
            ref = generate_supplier_order_ref()
            if not self.po_repo.ref_exists(ref, conn=conn):
                return ref
        raise ConflictError("Could not allocate a unique supplier order reference")

    def create_purchase_orders_for_order(self, conn, order: Order) -> List[PurchaseOrder]:
        """
        One PO per supplier chosen on the order's items

        Suppliers that already have a PO for the order are skipped, so this
        is safe to call again for the same order.

        Returns:
            The POs created by this call
        """
        existing = {po.supplier_id for po in self.po_repo.find_for_order(order.id, conn=conn)}
        created = []

        for supplier_id, items in split_by_supplier(order.items).items():
            if supplier_id in existing:
                continue
            amounts = po_amounts(items)
            po = self.po_repo.create(
                conn,
                order_id=order.id,
                supplier_id=supplier_id,
                supplier_order_ref=self._new_ref(conn),
                subtotal=amounts["subtotal"],
                platform_fee=amounts["platform_fee"],
                supplier_amount=amounts["supplier_amount"],
                order_item_ids=[item.id for item in items],
            )
            created.append(po)

        if created:
            logger.info(f"Order {order.id}: created {len(created)} purchase orders")
        return created

    # ------------------------------------------------------------------
    # Supplier side
    # ------------------------------------------------------------------

    def _supplier_id(self, user: TokenUser) -> str:
        supplier_id = self.supplier_repo.find_id_for_user(user.id)
        if not supplier_id:
            raise ForbiddenError("No supplier profile for this user")
        return supplier_id

    def list_for_supplier(self, user: TokenUser) -> List[PurchaseOrder]:
        if is_admin(user):
            return self.po_repo.find_all()
        return self.po_repo.find_for_supplier(self._supplier_id(user))

    def update_status(self, user: TokenUser, po_id: str, update: PurchaseOrderStatusUpdate) -> PurchaseOrder:
        """
        Move a supplier's PO to a new status

        Raises:
            ForbiddenError: admin caller or PO of another supplier
            NotFoundError: unknown PO
            ValidationError: unknown status
            ConflictError: transition not allowed
        """
        if is_admin(user):
            raise ForbiddenError("Admins cannot change supplier order status")
        supplier_id = self._supplier_id(user)
        target = normalize_status(update.status)

        with transaction() as conn:
            po = self.po_repo.find_by_id(po_id, for_update=True, conn=conn)
            if not po:
                raise NotFoundError("Purchase order not found")
            if po.supplier_id != supplier_id:
                raise ForbiddenError("Forbidden")
            if not can_transition(po.status, target):
                raise ConflictError(f"Cannot move purchase order from {po.status} to {target}")
            if po.status == target:
                return po

            reason = (update.reason or "").strip() or None
            po = self.po_repo.update_status(po.id, target, reason=reason, conn=conn)
            order = self.order_repo.find_by_id(po.order_id, with_items=False, conn=conn)
            self.order_repo.log_activity(
                po.order_id, "PO_STATUS", f"{po.supplier_order_ref} is now {target}",
                {"purchaseOrderId": po.id, "status": target, "reason": reason}, conn=conn
            )

            if target == PurchaseOrderStatus.CANCELED.value:
                body = f"Supplier order {po.supplier_order_ref} was canceled" + (f": {reason}" if reason else "")
                data = {"orderId": po.order_id, "purchaseOrderId": po.id}
                if order:
                    self.notifications.notify_user(order.user_id, "PO_CANCELED", "Order update", body, data, conn=conn)
                self.notifications.notify_admins("PO_CANCELED", "Supplier canceled an order", body, data, conn=conn)

            if target == PurchaseOrderStatus.DELIVERED.value:
                statuses = self.po_repo.statuses_for_order(po.order_id, conn=conn)
                if statuses and all(s == PurchaseOrderStatus.DELIVERED.value for s in statuses):
                    self.order_repo.update_status(po.order_id, OrderStatus.DELIVERED.value, conn=conn)
                    self.order_repo.log_activity(po.order_id, "ORDER_DELIVERED", "All supplier orders delivered", conn=conn)

        logger.info(f"Purchase order {po.id} -> {target}")
        return po

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def list_all(self, status: Optional[str] = None, supplier_id: Optional[str] = None) -> List[PurchaseOrder]:
        status = normalize_status(status) if status else None
        return self.po_repo.find_all(status=status, supplier_id=supplier_id)

    def release_payout(self, po_id: str) -> PurchaseOrder:
        """Credit the supplier ledger with a delivered PO's supplier amount"""
        with transaction() as conn:
            po = self.po_repo.find_by_id(po_id, for_update=True, conn=conn)
            if not po:
                raise NotFoundError("Purchase order not found")
            if po.status != PurchaseOrderStatus.DELIVERED.value or po.payout_status != PayoutStatus.PENDING.value:
                raise ConflictError("Payout can only be released for a delivered purchase order with a pending payout")

            self.po_repo.add_ledger_entry(
                conn,
                supplier_id=po.supplier_id,
                type="CREDIT",
                amount=po.supplier_amount,
                reference_type="PURCHASE_ORDER",
                reference_id=po.id,
                meta={"supplierOrderRef": po.supplier_order_ref},
            )
            self.po_repo.set_payout_status(po.id, PayoutStatus.RELEASED.value, conn=conn)
            po = self.po_repo.find_by_id(po.id, conn=conn)

        logger.info(f"Released payout {po.supplier_amount} for purchase order {po.id}")
        return po
