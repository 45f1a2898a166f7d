"""
Unit tests for RefundService: requests, supplier review and admin resolution
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from marketplace.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.domain.fulfillment import PurchaseOrder, PurchaseOrderItem
from marketplace.domain.refund import Refund, RefundAction, RefundCreate
from marketplace.services.refund_service import RefundService, items_amount, refund_items_for

PATCH_TX = 'marketplace.services.refund_service.transaction'


def _po(po_id="po-1", supplier_id="sup-1", status="SHIPPED", payout_status="PENDING"):
    return PurchaseOrder(
        id=po_id,
        order_id="order-1",
        supplier_id=supplier_id,
        supplier_order_ref=f"SPO-{po_id[-1]}AAA-BBBB",
        subtotal=Decimal("3000.00"),
        supplier_amount=Decimal("2500.00"),
        status=status,
        payout_status=payout_status,
        items=[
            PurchaseOrderItem(id=f"{po_id}-i1", purchase_order_id=po_id, order_item_id="item-1",
                              quantity=2, unit_price=Decimal("1200")),
            PurchaseOrderItem(id=f"{po_id}-i2", purchase_order_id=po_id, order_item_id="item-2",
                              quantity=1, unit_price=Decimal("600")),
        ],
    )


def _refund(status="SUPPLIER_REVIEW", total="600.00"):
    return Refund(
        id="ref-1",
        order_id="order-1",
        purchase_order_id="po-1",
        supplier_id="sup-1",
        status=status,
        requested_by_user_id="user-1",
        total_amount=Decimal(total),
    )


@pytest.fixture
def deps(sample_order):
    refund_repo = MagicMock()
    refund_repo.exists_for_purchase_order.return_value = False
    refund_repo.create.side_effect = lambda conn, **kw: _refund(total=str(kw["total_amount"]))
    refund_repo.update_status.side_effect = lambda refund_id, status, conn=None: _refund(status=status)
    po_repo = MagicMock()
    po_repo.find_for_order.return_value = [_po()]
    order_repo = MagicMock()
    order_repo.find_by_id.return_value = sample_order
    supplier_repo = MagicMock()
    supplier_repo.find_id_for_user.return_value = "sup-1"
    notifications = MagicMock()
    return refund_repo, po_repo, order_repo, supplier_repo, notifications


class TestRefundAmounts:

    def test_all_po_items_when_nothing_selected(self):
        items = refund_items_for(_po(), [])

        assert [(i.order_item_id, i.qty) for i in items] == [("item-1", 2), ("item-2", 1)]
        assert items_amount(_po(), items) == Decimal("3000.00")

    def test_only_selected_items(self):
        items = refund_items_for(_po(), ["item-2", "item-9"])

        assert [i.order_item_id for i in items] == ["item-2"]
        assert items_amount(_po(), items) == Decimal("600.00")


class TestCreateRefund:

    def test_supplier_cannot_request(self, deps, supplier_user):
        with pytest.raises(ForbiddenError):
            RefundService(*deps).create(supplier_user, RefundCreate(order_id="order-1", reason="Damaged"))

    def test_reason_required(self, deps, shopper):
        with pytest.raises(ValidationError, match="orderId and reason are required"):
            RefundService(*deps).create(shopper, RefundCreate(order_id="order-1", reason="  "))

    def test_other_shoppers_order(self, deps, other_shopper):
        with pytest.raises(ForbiddenError):
            RefundService(*deps).create(other_shopper, RefundCreate(order_id="order-1", reason="Damaged"))

    def test_missing_order(self, deps, shopper):
        deps[2].find_by_id.return_value = None

        with pytest.raises(NotFoundError):
            RefundService(*deps).create(shopper, RefundCreate(order_id="order-1", reason="Damaged"))

    def test_creates_refund_per_po(self, deps, shopper, fake_transaction):
        refund_repo, po_repo, _, _, notifications = deps
        data = RefundCreate(order_id="order-1", reason=" Damaged on arrival ", order_item_ids=["item-2"])

        with patch(PATCH_TX, fake_transaction):
            refunds = RefundService(*deps).create(shopper, data)

        assert len(refunds) == 1
        kwargs = refund_repo.create.call_args.kwargs
        assert kwargs["status"] == "SUPPLIER_REVIEW"
        assert kwargs["reason"] == "Damaged on arrival"
        assert kwargs["total_amount"] == Decimal("600.00")
        assert kwargs["requested_by_user_id"] == "user-1"
        assert po_repo.update_status.call_args.args[:2] == ("po-1", "REFUND_REQUESTED")
        assert refund_repo.log_event.call_args.args[1] == "REQUESTED"
        notifications.notify_suppliers.assert_called_once()
        notifications.notify_admins.assert_called_once()

    def test_delivered_po_status_is_kept(self, deps, shopper, fake_transaction):
        deps[1].find_for_order.return_value = [_po(status="DELIVERED")]

        with patch(PATCH_TX, fake_transaction):
            RefundService(*deps).create(shopper, RefundCreate(order_id="order-1", reason="Wrong size"))

        deps[1].update_status.assert_not_called()

    def test_no_purchase_orders_yet(self, deps, shopper, fake_transaction):
        deps[1].find_for_order.return_value = []

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ValidationError, match="No purchase orders found"):
                RefundService(*deps).create(shopper, RefundCreate(order_id="order-1", reason="Damaged"))

    def test_duplicate_refund(self, deps, shopper, fake_transaction):
        deps[0].exists_for_purchase_order.return_value = True

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ValidationError, match="Refund already exists for purchase order po-1"):
                RefundService(*deps).create(shopper, RefundCreate(order_id="order-1", reason="Damaged"))

    def test_selection_outside_order(self, deps, shopper, fake_transaction):
        data = RefundCreate(order_id="order-1", reason="Damaged", order_item_ids=["item-404"])

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ValidationError, match="No order items selected for refund."):
                RefundService(*deps).create(shopper, data)

    def test_target_single_purchase_order(self, deps, shopper, fake_transaction):
        deps[1].find_for_order.return_value = [_po("po-1"), _po("po-2", supplier_id="sup-2")]
        data = RefundCreate(order_id="order-1", reason="Damaged", purchase_order_id="po-2")

        with patch(PATCH_TX, fake_transaction):
            RefundService(*deps).create(shopper, data)

        assert deps[0].create.call_count == 1
        assert deps[0].create.call_args.kwargs["purchase_order_id"] == "po-2"


class TestSupplierResponse:

    def test_accept(self, deps, supplier_user, fake_transaction):
        refund_repo, _, _, _, notifications = deps
        refund_repo.find_by_id.return_value = _refund()

        with patch(PATCH_TX, fake_transaction):
            refund = RefundService(*deps).supplier_respond(supplier_user, "ref-1", RefundAction(action="accept"))

        assert refund.status == "SUPPLIER_ACCEPTED"
        assert notifications.notify_user.call_args.args[:2] == ("user-1", "REFUND_UPDATED")

    def test_invalid_action(self, deps, supplier_user):
        with pytest.raises(ValidationError):
            RefundService(*deps).supplier_respond(supplier_user, "ref-1", RefundAction(action="APPROVE"))

    def test_wrong_state_conflicts(self, deps, supplier_user, fake_transaction):
        deps[0].find_by_id.return_value = _refund(status="APPROVED")

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ConflictError):
                RefundService(*deps).supplier_respond(supplier_user, "ref-1", RefundAction(action="REJECT"))

    def test_other_suppliers_refund(self, deps, supplier_user, fake_transaction):
        deps[3].find_id_for_user.return_value = "sup-7"
        deps[0].find_by_id.return_value = _refund()

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ForbiddenError):
                RefundService(*deps).supplier_respond(supplier_user, "ref-1", RefundAction(action="ACCEPT"))


class TestAdminResolution:

    def test_approve_after_supplier_rejection(self, deps, admin_user, fake_transaction):
        deps[0].find_by_id.return_value = _refund(status="SUPPLIER_REJECTED")

        with patch(PATCH_TX, fake_transaction):
            refund = RefundService(*deps).admin_resolve(admin_user, "ref-1", RefundAction(action="APPROVE"))

        assert refund.status == "APPROVED"

    def test_cannot_approve_refunded(self, deps, admin_user, fake_transaction):
        deps[0].find_by_id.return_value = _refund(status="REFUNDED")

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ConflictError):
                RefundService(*deps).admin_resolve(admin_user, "ref-1", RefundAction(action="APPROVE"))

    def test_mark_refunded_requires_approval(self, deps, admin_user, fake_transaction):
        deps[0].find_by_id.return_value = _refund(status="SUPPLIER_ACCEPTED")

        with patch(PATCH_TX, fake_transaction):
            with pytest.raises(ConflictError, match="Only approved refunds"):
                RefundService(*deps).admin_resolve(admin_user, "ref-1", RefundAction(action="MARK_REFUNDED"))

    def test_mark_refunded_debits_released_payout(self, deps, admin_user, fake_transaction):
        refund_repo, po_repo, _, _, _ = deps
        refund_repo.find_by_id.return_value = _refund(status="APPROVED")
        po_repo.find_by_id.return_value = _po(status="DELIVERED", payout_status="RELEASED")

        with patch(PATCH_TX, fake_transaction):
            refund = RefundService(*deps).admin_resolve(admin_user, "ref-1", RefundAction(action="MARK_REFUNDED"))

        ledger = po_repo.add_ledger_entry.call_args.kwargs
        assert ledger["type"] == "DEBIT"
        assert ledger["amount"] == Decimal("600.00")
        assert ledger["reference_type"] == "REFUND"
        assert po_repo.update_status.call_args.args[:2] == ("po-1", "REFUNDED")
        assert refund.status == "REFUNDED"

    def test_mark_refunded_without_released_payout_has_no_debit(self, deps, admin_user, fake_transaction):
        refund_repo, po_repo, _, _, _ = deps
        refund_repo.find_by_id.return_value = _refund(status="APPROVED")
        po_repo.find_by_id.return_value = _po(status="DELIVERED", payout_status="PENDING")

        with patch(PATCH_TX, fake_transaction):
            RefundService(*deps).admin_resolve(admin_user, "ref-1", RefundAction(action="MARK_REFUNDED"))

        po_repo.add_ledger_entry.assert_not_called()
