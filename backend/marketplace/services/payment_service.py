"""
Payment Service - Paystack checkout, verification, webhooks and the paid flow

Flow:
1. init: create a PENDING payment with a ref8 reference and send the shopper
   to Paystack (or return trial / bank-transfer instructions)
2. verify or webhook: confirm the charge with Paystack and mark it PAID
3. finalize: move the order forward, create supplier purchase orders,
   notify everyone and record a profit snapshot (once per order)

Date: 2026-02-26
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from urllib.parse import urlencode

import httpx

from marketplace.connectors.paystack_connector import PaystackConnector, PaystackError
from marketplace.core.auth import TokenUser, is_admin
from marketplace.core.config import settings
from marketplace.core.database import transaction
from marketplace.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from marketplace.core.money import CURRENCY, estimate_paystack_fee, round2, to_decimal, to_kobo
from marketplace.core.references import generate_ref8
from marketplace.domain.order import Order, OrderItem, OrderStatus
from marketplace.domain.payment import (
    CLOSED_STATUSES,
    Payment,
    PaymentInitRequest,
    PaymentStatus,
    PaymentVerifyRequest,
)
from marketplace.repositories.order_repository import OrderRepository
from marketplace.repositories.payment_repository import PaymentRepository
from marketplace.repositories.supplier_repository import SupplierRepository
from marketplace.services.fulfillment_service import FulfillmentService
from marketplace.services.notification_service import NotificationService
from marketplace.services.order_service import compute_profit

logger = logging.getLogger(__name__)

REF_ATTEMPTS = 5
PAYSTACK = "paystack"
FINALIZE_EVENT = "FINALIZE_PAID"


def supplier_split_amounts(items: List[OrderItem]) -> Dict[str, Decimal]:
    """Retail amount owed per chosen supplier: sum of unit price x max(1, qty)"""
    totals: Dict[str, Decimal] = {}
    for item in items:
        if not item.chosen_supplier_id:
            continue
        amount = to_decimal(item.unit_price) * max(1, item.quantity)
        totals[item.chosen_supplier_id] = totals.get(item.chosen_supplier_id, Decimal("0")) + amount
    return {supplier_id: round2(amount) for supplier_id, amount in totals.items()}


def build_split_subaccounts(amounts: Dict[str, Decimal], codes: Dict[str, str]) -> List[dict]:
    """Flat split shares in kobo, only for suppliers with a Paystack subaccount"""
    return [
        {"subaccount": codes[supplier_id], "share": to_kobo(amount)}
        for supplier_id, amount in amounts.items()
        if codes.get(supplier_id) and amount > 0
    ]


def is_fresh(payment: Payment, now: Optional[datetime] = None) -> bool:
    """A pending attempt can be resumed while younger than PAYMENT_PENDING_TTL_MIN"""
    if not payment.created_at:
        return False
    now = now or datetime.now(timezone.utc)
    created = payment.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return now - created <= timedelta(minutes=settings.PAYMENT_PENDING_TTL_MIN)


def callback_url(order_id: str, reference: str) -> str:
    query = urlencode({"orderId": order_id, "reference": reference, "gateway": PAYSTACK})
    return f"{settings.APP_URL.rstrip('/')}/payment-callback?{query}"


def paid_order_status() -> str:
    if settings.ORDER_PAID_STATUS.upper() == OrderStatus.PAID.value:
        return OrderStatus.PAID.value
    return OrderStatus.AWAITING_FULFILLMENT.value


class PaymentService:

    def __init__(
        self,
        payment_repo: Optional[PaymentRepository] = None,
        order_repo: Optional[OrderRepository] = None,
        supplier_repo: Optional[SupplierRepository] = None,
        fulfillment: Optional[FulfillmentService] = None,
        notifications: Optional[NotificationService] = None,
        connector: Optional[PaystackConnector] = None
    ):
        self.payment_repo = payment_repo or PaymentRepository()
        self.order_repo = order_repo or OrderRepository()
        self.supplier_repo = supplier_repo or SupplierRepository()
        self.notifications = notifications or NotificationService()
        self.fulfillment = fulfillment or FulfillmentService(order_repo=self.order_repo, notifications=self.notifications)
        self._connector = connector

    @property
    def connector(self) -> PaystackConnector:
        if self._connector is None:
            self._connector = PaystackConnector()
        return self._connector

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _own_order(self, order_id: str, user: TokenUser) -> Order:
        order = self.order_repo.find_by_id(order_id)
        if not order or (order.user_id != user.id and not is_admin(user)):
            raise NotFoundError("Order not found")
        return order

    def _new_reference(self) -> str:
        for _ in range(REF_ATTEMPTS):
            reference = generate_ref8()
            if not self.payment_repo.reference_exists(reference):
                return reference
        raise ConflictError("Could not allocate a unique payment reference")

    async def _create_split(self, order: Order, payment: Payment) -> Optional[str]:
        amounts = supplier_split_amounts(order.items)
        codes = self.supplier_repo.subaccount_codes(list(amounts.keys()))
        subaccounts = build_split_subaccounts(amounts, codes)
        if not subaccounts:
            return None

        try:
            split_code = await self.connector.create_split(f"Order {order.id}", subaccounts, CURRENCY)
        except (PaystackError, httpx.HTTPError) as e:
            logger.warning(f"Split creation failed for order {order.id}: {e}")
            self.payment_repo.log_event(payment.id, "SPLIT_FAILED", {"error": str(e)})
            return None

        self.payment_repo.log_event(payment.id, "SPLIT_USED", {
            "splitCode": split_code,
            "subaccounts": subaccounts,
        })
        return split_code

    # ------------------------------------------------------------------
    # Init
    # ------------------------------------------------------------------

    async def init_payment(self, user: TokenUser, request: PaymentInitRequest) -> dict:
        """
        Start (or resume) a payment for one of the caller's orders

        Raises:
            NotFoundError: order missing or not the caller's
            ConflictError: order already paid
            UpstreamError: Paystack refused to initialize the transaction
        """
        order = self._own_order(request.order_id, user)
        if order.is_paid or self.payment_repo.paid_for_order(order.id):
            raise ConflictError("Order already paid")

        channel = (request.channel or PAYSTACK).lower()

        for pending in self.payment_repo.find_pending_for_order(order.id):
            if pending.channel == channel and is_fresh(pending) and pending.authorization_url:
                self.order_repo.log_activity(order.id, "PAYMENT_RESUME", "Resumed pending payment", {
                    "reference": pending.reference,
                })
                payload = pending.init_payload or {}
                return {
                    "mode": PAYSTACK,
                    "reference": pending.reference,
                    "authorization_url": pending.authorization_url,
                    "access_code": payload.get("access_code"),
                }

        canceled = self.payment_repo.cancel_pending(order.id)
        if canceled:
            logger.info(f"Order {order.id}: canceled {canceled} stale payment attempts")

        reference = self._new_reference()
        payment = self.payment_repo.create(
            order.id, reference, order.total, channel,
            provider=PAYSTACK if channel == PAYSTACK else None,
        )
        self.order_repo.log_activity(order.id, "PAYMENT_INIT", f"Payment {reference} started", {
            "reference": reference,
            "channel": channel,
        })

        if settings.PAYMENTS_TRIAL_MODE:
            return {"mode": "trial", "reference": reference, "amount": float(order.total)}

        if channel != PAYSTACK:
            return {
                "mode": "bank_transfer",
                "reference": reference,
                "amount": float(order.total),
                "bank": {
                    "bankName": settings.INLINE_BANK_NAME,
                    "accountName": settings.INLINE_BANK_ACCOUNT_NAME,
                    "accountNumber": settings.INLINE_BANK_ACCOUNT_NUMBER,
                },
            }

        split_code = await self._create_split(order, payment)
        try:
            data = await self.connector.initialize_transaction(
                email=order.user_email or user.email,
                amount_kobo=to_kobo(order.total),
                reference=reference,
                callback_url=callback_url(order.id, reference),
                metadata={"orderId": order.id, "paymentId": payment.id},
                split_code=split_code,
                currency=CURRENCY,
            )
        except (PaystackError, httpx.HTTPError) as e:
            logger.error(f"Paystack initialize failed for {reference}: {e}")
            self.payment_repo.log_event(payment.id, "INIT_FAILED", {"error": str(e)})
            self.payment_repo.update_status(payment.id, PaymentStatus.FAILED.value)
            raise UpstreamError("Could not start Paystack checkout")

        self.payment_repo.save_init_payload(payment.id, PAYSTACK, data)
        return {
            "mode": PAYSTACK,
            "reference": reference,
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
        }

    # ------------------------------------------------------------------
    # Verify / webhook
    # ------------------------------------------------------------------

    def _confirm(self, payment: Payment, amount: Decimal, fee: Optional[Decimal], payload: Optional[dict]) -> None:
        if self.payment_repo.mark_paid(payment.id, amount, fee, payload):
            logger.info(f"Payment {payment.reference} marked PAID ({amount})")
        self.finalize_paid_flow(payment.reference)

    async def verify_payment(self, user: TokenUser, request: PaymentVerifyRequest) -> dict:
        if not request.order_id or not request.reference:
            raise ValidationError("orderId and reference are required")

        self._own_order(request.order_id, user)
        payment = self.payment_repo.find_by_reference(request.reference)
        if not payment or payment.order_id != request.order_id:
            raise NotFoundError("Payment not found")

        if payment.status == PaymentStatus.PAID.value:
            return {"ok": True, "status": PaymentStatus.PAID.value}
        if payment.status in CLOSED_STATUSES:
            return {"ok": False, "status": payment.status}

        if settings.PAYMENTS_TRIAL_MODE or payment.channel != PAYSTACK:
            if settings.PAYMENTS_REQUIRE_MANUAL_APPROVAL:
                return {"ok": False, "status": PaymentStatus.PENDING.value, "message": "Awaiting manual approval"}
            self._confirm(payment, payment.amount, Decimal("0.00"), {"mode": "manual"})
            return {"ok": True, "status": PaymentStatus.PAID.value}

        try:
            data = await self.connector.verify_transaction(payment.reference)
        except (PaystackError, httpx.HTTPError) as e:
            logger.warning(f"Paystack verify failed for {payment.reference}: {e}")
            self.payment_repo.log_event(payment.id, "VERIFY_ERROR", {"error": str(e)})
            return {"ok": False, "status": PaymentStatus.PENDING.value, "message": "Could not verify yet"}

        if data.get("reference") and data.get("reference") != payment.reference:
            raise ValidationError("Reference mismatch")

        tx_status = (data.get("status") or "").lower()
        if tx_status == "success":
            amount = round2(to_decimal(data.get("amount") or 0) / 100) or payment.amount
            fees = data.get("fees")
            fee = round2(to_decimal(fees) / 100) if fees is not None else estimate_paystack_fee(amount)
            self._confirm(payment, amount, fee, data)
            return {"ok": True, "status": PaymentStatus.PAID.value}

        if tx_status == "failed":
            self.payment_repo.update_status(payment.id, PaymentStatus.FAILED.value, data)
            return {"ok": False, "status": PaymentStatus.FAILED.value}

        return {"ok": False, "status": PaymentStatus.PENDING.value}

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> dict:
        """
        Paystack webhook

        Raises:
            AuthenticationError: signature does not match the raw body, or no
                Paystack secret is configured
        """
        try:
            connector = self.connector
        except ValueError as e:
            logger.error(f"Paystack webhook rejected: {e}")
            raise AuthenticationError("bad sig")

        if not connector.verify_signature(raw_body, signature):
            raise AuthenticationError("bad sig")

        try:
            event = json.loads(raw_body or b"{}")
        except ValueError:
            logger.warning("Paystack webhook with unreadable body")
            return {"received": True}

        event_type = event.get("event")
        data = event.get("data") or {}
        reference = data.get("reference")
        payment = self.payment_repo.find_by_reference(reference) if reference else None
        if not payment:
            logger.info(f"Paystack webhook {event_type} for unknown reference {reference}")
            return {"received": True}

        self.payment_repo.log_event(payment.id, "WEBHOOK", {"event": event_type, "data": data})

        if event_type == "charge.success" and payment.status != PaymentStatus.PAID.value:
            amount = round2(to_decimal(data.get("amount") or 0) / 100) or payment.amount
            fees = data.get("fees")
            fee = round2(to_decimal(fees) / 100) if fees is not None else estimate_paystack_fee(amount)
            try:
                self._confirm(payment, amount, fee, data)
            except Exception:
                # still acked; /verify can finish the flow
                logger.exception(f"Webhook confirmation failed for {reference}")

        return {"received": True}

    # ------------------------------------------------------------------
    # Paid flow
    # ------------------------------------------------------------------

    def finalize_paid_flow(self, reference: str) -> bool:
        """
        Everything that happens once an order is paid

        Runs at most once per order (guarded by a FINALIZE_PAID event on the
        locked payment row).

        Returns:
            True when this call did the work
        """
        with transaction() as conn:
            payment = self.payment_repo.find_by_reference(reference, for_update=True, conn=conn)
            if not payment or payment.status != PaymentStatus.PAID.value:
                return False
            if self.payment_repo.order_has_event(payment.order_id, FINALIZE_EVENT, conn=conn):
                return False
            self.payment_repo.log_event(payment.id, FINALIZE_EVENT, {"reference": reference}, conn=conn)

            self.payment_repo.cancel_pending(payment.order_id, keep_payment_id=payment.id, conn=conn)
            self.order_repo.update_status(payment.order_id, paid_order_status(), mark_paid=True, conn=conn)
            self.order_repo.log_activity(
                payment.order_id, "PAYMENT_CONFIRMED", f"Payment {reference} confirmed",
                {"reference": reference, "amount": float(payment.amount)}, conn=conn
            )

            order = self.order_repo.find_by_id(payment.order_id, conn=conn)
            self.fulfillment.create_purchase_orders_for_order(conn, order)

            supplier_ids = list(dict.fromkeys(i.chosen_supplier_id for i in order.items if i.chosen_supplier_id))
            data = {"orderId": order.id}
            if supplier_ids and not self.payment_repo.order_has_event(order.id, "SUPPLIER_NOTIFIED", conn=conn):
                self.notifications.notify_suppliers(
                    supplier_ids, "NEW_ORDER", "New order",
                    f"You have a new paid order ({order.id})", data, conn=conn
                )
                self.payment_repo.log_event(payment.id, "SUPPLIER_NOTIFIED", {"suppliers": supplier_ids}, conn=conn)

            self.notifications.notify_user(
                order.user_id, "ORDER_PAID", "Payment received",
                f"We received your payment for order {order.id}", data, conn=conn
            )

            profit = compute_profit(order, self.payment_repo.paid_for_order(order.id, conn=conn))
            self.payment_repo.log_event(payment.id, "PROFIT_COMPUTED", profit, conn=conn)

        logger.info(f"Order {payment.order_id} finalized after payment {reference}")
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, user: TokenUser, order_id: Optional[str], reference: Optional[str]) -> Payment:
        if not order_id or not reference:
            raise ValidationError("orderId and reference are required")
        self._own_order(order_id, user)
        payment = self.payment_repo.find_by_reference(reference)
        if not payment or payment.order_id != order_id:
            raise NotFoundError("Payment not found")
        return payment

    def mine(self, user_id: str) -> List[Payment]:
        return self.payment_repo.find_for_user(user_id)

    def summary(self, user_id: str) -> dict:
        total = self.payment_repo.total_paid_for_user(user_id)
        return {"totalPaid": float(round2(total or 0)), "currency": CURRENCY}
