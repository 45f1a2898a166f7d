"""
Refund Service - shopper refund requests, supplier review and admin resolution

One refund is opened per purchase order. The supplier accepts or rejects it,
then an admin approves or rejects it and finally marks it refunded.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from marketplace.core.auth import TokenUser, is_admin
from marketplace.core.database import transaction
from marketplace.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.core.money import round2, to_decimal
from marketplace.core.session_policy import norm_role
from marketplace.domain.account import Role
from marketplace.domain.fulfillment import PayoutStatus, PurchaseOrder, PurchaseOrderStatus
from marketplace.domain.refund import Refund, RefundAction, RefundCreate, RefundItem, RefundStatus
from marketplace.repositories.order_repository import OrderRepository
from marketplace.repositories.purchase_order_repository import PurchaseOrderRepository
from marketplace.repositories.refund_repository import RefundRepository
from marketplace.repositories.supplier_repository import SupplierRepository
from marketplace.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

REQUESTER_ROLES = (Role.SHOPPER, Role.ADMIN, Role.SUPER_ADMIN)

# PO statuses left alone when a refund is requested
PO_KEEP_STATUSES = (
    PurchaseOrderStatus.DELIVERED.value,
    "COMPLETED",
    PurchaseOrderStatus.CANCELED.value,
    PurchaseOrderStatus.REFUNDED.value,
    PurchaseOrderStatus.REFUND_REQUESTED.value,
)

ADMIN_DECIDABLE = (
    RefundStatus.SUPPLIER_REVIEW.value,
    RefundStatus.SUPPLIER_ACCEPTED.value,
    RefundStatus.SUPPLIER_REJECTED.value,
    RefundStatus.ESCALATED.value,
)


def refund_items_for(po: PurchaseOrder, selected_ids: List[str]) -> List[RefundItem]:
    """The selected order items that belong to this PO, or all of its items"""
    chosen = [i for i in po.items if i.order_item_id in selected_ids] if selected_ids else list(po.items)
    return [RefundItem(order_item_id=i.order_item_id, qty=max(1, i.quantity or 1)) for i in chosen]


def items_amount(po: PurchaseOrder, items: List[RefundItem]) -> Decimal:
    prices = {i.order_item_id: to_decimal(i.unit_price or 0) for i in po.items}
    return round2(sum((prices.get(item.order_item_id, Decimal("0")) * item.qty for item in items), Decimal("0")))


class RefundService:

    def __init__(
        self,
        refund_repo: Optional[RefundRepository] = None,
        po_repo: Optional[PurchaseOrderRepository] = None,
        order_repo: Optional[OrderRepository] = None,
        supplier_repo: Optional[SupplierRepository] = None,
        notifications: Optional[NotificationService] = None
    ):
        self.refund_repo = refund_repo or RefundRepository()
        self.po_repo = po_repo or PurchaseOrderRepository()
        self.order_repo = order_repo or OrderRepository()
        self.supplier_repo = supplier_repo or SupplierRepository()
        self.notifications = notifications or NotificationService()

    def create(self, user: TokenUser, data: RefundCreate) -> List[Refund]:
        """
        Open refunds for an order (one per targeted purchase order)

        Raises:
            ForbiddenError: caller role cannot request refunds, or not the owner
            ValidationError: missing fields, no POs, or a refund already exists
            NotFoundError: order missing
        """
        if norm_role(user.role) not in REQUESTER_ROLES:
            raise ForbiddenError("Only shoppers and admins can request refunds")
        if not data.order_id or not (data.reason or "").strip():
            raise ValidationError("orderId and reason are required")

        order = self.order_repo.find_by_id(data.order_id, with_items=False)
        if not order:
            raise NotFoundError("Order not found")
        if order.user_id != user.id and not is_admin(user):
            raise ForbiddenError("Forbidden")

        selected = data.selected_item_ids()
        meta = {
            "message": data.message,
            "evidenceUrls": data.evidence_urls,
            "requestedBy": user.id,
        }
        refunds = []

        with transaction() as conn:
            pos = self.po_repo.find_for_order(order.id, conn=conn)
            if data.purchase_order_id:
                pos = [po for po in pos if po.id == data.purchase_order_id]
            if not pos:
                raise ValidationError("No purchase orders found for this order yet.")

            for po in pos:
                if self.refund_repo.exists_for_purchase_order(po.id, conn=conn):
                    raise ValidationError(f"Refund already exists for purchase order {po.id}")

                items = refund_items_for(po, selected)
                if not items:
                    continue
                amount = items_amount(po, items)

                refund = self.refund_repo.create(
                    conn,
                    order_id=order.id,
                    purchase_order_id=po.id,
                    supplier_id=po.supplier_id,
                    requested_by_user_id=order.user_id,
                    reason=data.reason.strip(),
                    fault_party=data.fault_party,
                    items_amount=amount,
                    total_amount=amount,
                    status=RefundStatus.SUPPLIER_REVIEW.value,
                    meta=meta,
                    items=items,
                )
                if po.status not in PO_KEEP_STATUSES:
                    self.po_repo.update_status(po.id, PurchaseOrderStatus.REFUND_REQUESTED.value, conn=conn)

                self.refund_repo.log_event(refund.id, RefundStatus.REQUESTED.value, data.reason, {"by": user.id}, conn=conn)
                note = {"refundId": refund.id, "orderId": order.id, "purchaseOrderId": po.id}
                body = f"Refund requested for {po.supplier_order_ref}: {data.reason.strip()}"
                self.notifications.notify_suppliers([po.supplier_id], "REFUND_REQUESTED", "Refund requested", body, note, conn=conn)
                self.notifications.notify_admins("REFUND_REQUESTED", "Refund requested", body, note, conn=conn)
                refunds.append(refund)

            if not refunds:
                raise ValidationError("No order items selected for refund.")

        logger.info(f"Order {order.id}: {len(refunds)} refund(s) requested by {user.id}")
        return refunds

    def mine(self, user_id: str) -> List[Refund]:
        return self.refund_repo.find_for_user(user_id)

    def _transition(self, refund: Refund, status: str, event: str, note: Optional[str], actor: str, conn) -> Refund:
        updated = self.refund_repo.update_status(refund.id, status, conn=conn)
        self.refund_repo.log_event(refund.id, event, note, {"by": actor}, conn=conn)
        self.notifications.notify_user(
            refund.requested_by_user_id, "REFUND_UPDATED", "Refund update",
            f"Your refund is now {status.replace('_', ' ').lower()}",
            {"refundId": refund.id, "orderId": refund.order_id, "status": status}, conn=conn
        )
        return updated

    def supplier_respond(self, user: TokenUser, refund_id: str, action: RefundAction) -> Refund:
        verb = (action.action or "").strip().upper()
        if verb not in ("ACCEPT", "REJECT"):
            raise ValidationError("action must be ACCEPT or REJECT")

        supplier_id = self.supplier_repo.find_id_for_user(user.id)
        if not supplier_id:
            raise ForbiddenError("No supplier profile for this user")

        with transaction() as conn:
            refund = self.refund_repo.find_by_id(refund_id, for_update=True, conn=conn)
            if not refund:
                raise NotFoundError("Refund not found")
            if refund.supplier_id != supplier_id:
                raise ForbiddenError("Forbidden")
            if refund.status != RefundStatus.SUPPLIER_REVIEW.value:
                raise ConflictError(f"Refund is {refund.status}, not awaiting supplier review")

            status = RefundStatus.SUPPLIER_ACCEPTED.value if verb == "ACCEPT" else RefundStatus.SUPPLIER_REJECTED.value
            refund = self._transition(refund, status, status, action.note, user.id, conn)

        logger.info(f"Refund {refund_id}: supplier {verb}")
        return refund

    def admin_resolve(self, user: TokenUser, refund_id: str, action: RefundAction) -> Refund:
        verb = (action.action or "").strip().upper()
        if verb not in ("APPROVE", "REJECT", "MARK_REFUNDED"):
            raise ValidationError("action must be APPROVE, REJECT or MARK_REFUNDED")

        with transaction() as conn:
            refund = self.refund_repo.find_by_id(refund_id, for_update=True, conn=conn)
            if not refund:
                raise NotFoundError("Refund not found")

            if verb in ("APPROVE", "REJECT"):
                if refund.status not in ADMIN_DECIDABLE:
                    raise ConflictError(f"Cannot {verb.lower()} a refund that is {refund.status}")
                status = RefundStatus.APPROVED.value if verb == "APPROVE" else RefundStatus.REJECTED.value
                refund = self._transition(refund, status, status, action.note, user.id, conn)
            else:
                if refund.status != RefundStatus.APPROVED.value:
                    raise ConflictError("Only approved refunds can be marked refunded")
                po = self.po_repo.find_by_id(refund.purchase_order_id, for_update=True, conn=conn)
                if po and refund.total_amount > 0 and po.payout_status == PayoutStatus.RELEASED.value:
                    self.po_repo.add_ledger_entry(
                        conn,
                        supplier_id=po.supplier_id,
                        type="DEBIT",
                        amount=refund.total_amount,
                        reference_type="REFUND",
                        reference_id=refund.id,
                        meta={"purchaseOrderId": po.id},
                    )
                if po:
                    self.po_repo.update_status(po.id, PurchaseOrderStatus.REFUNDED.value, conn=conn)
                refund = self._transition(
                    refund, RefundStatus.REFUNDED.value, RefundStatus.REFUNDED.value, action.note, user.id, conn
                )

        logger.info(f"Refund {refund_id}: admin {verb}")
        return refund
