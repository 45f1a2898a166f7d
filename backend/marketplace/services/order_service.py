"""
Order Service - order placement and order queries

Placement runs in one transaction: candidate offers are locked, the
quantity of each line is allocated cheapest-first across suppliers, offer
stock is decremented and one order item is written per allocation.

Date: 2026-02-19
"""
import logging
from decimal import Decimal
from typing import List, Optional

from marketplace.core.auth import TokenUser, is_admin
from marketplace.core.database import transaction
from marketplace.core.exceptions import ForbiddenError, InsufficientStockError, NotFoundError, ValidationError
from marketplace.core.money import apply_margin, round2
from marketplace.domain.catalog import Offer, OfferKind
from marketplace.domain.order import Order, OrderCreate, OrderLineInput
from marketplace.domain.payment import Payment
from marketplace.repositories.offer_repository import OfferRepository
from marketplace.repositories.order_repository import OrderRepository
from marketplace.repositories.payment_repository import PaymentRepository
from marketplace.repositories.product_repository import ProductRepository
from marketplace.services.checkout_service import compute_summary
from marketplace.services.pricing_service import allocate_greedy, candidate_pool
from marketplace.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


def compute_profit(order: Order, payment: Optional[Payment]) -> dict:
    """
    Profit snapshot for a paid order

    simple   = revenue - cost of goods
    accurate = revenue - (cost of goods + gateway fee + comms fee + base fee)
    """
    revenue = payment.amount if payment else Decimal("0")
    gateway = (payment.fee_amount if payment and payment.fee_amount is not None else order.service_fee_gateway)
    cogs = round2(sum((item.supplier_cost for item in order.items), Decimal("0")))
    comms = order.service_fee_comms
    base = order.service_fee_base

    return {
        "orderId": order.id,
        "revenue": float(round2(revenue)),
        "cogs": float(cogs),
        "gatewayFee": float(round2(gateway)),
        "commsFee": float(round2(comms)),
        "baseServiceFee": float(round2(base)),
        "profitSimple": float(round2(revenue - cogs)),
        "profitAccurate": float(round2(revenue - (cogs + gateway + comms + base))),
        "currency": "NGN",
    }


class OrderService:

    def __init__(
        self,
        order_repo: Optional[OrderRepository] = None,
        offer_repo: Optional[OfferRepository] = None,
        product_repo: Optional[ProductRepository] = None,
        payment_repo: Optional[PaymentRepository] = None,
        settings_service: Optional[SettingsService] = None
    ):
        self.order_repo = order_repo or OrderRepository()
        self.offer_repo = offer_repo or OfferRepository()
        self.product_repo = product_repo or ProductRepository()
        self.payment_repo = payment_repo or PaymentRepository()
        self.settings_service = settings_service or SettingsService()

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    @staticmethod
    def validate(data: OrderCreate) -> None:
        if not data.items:
            raise ValidationError("No items.")
        if not data.shipping_address and not data.shipping_address_id:
            raise ValidationError("Shipping address is required.")
        for line in data.items:
            if not line.product_id or not line.qty or line.qty <= 0:
                raise ValidationError("Invalid line item.")

    def _candidates(self, conn, line: OrderLineInput) -> List[Offer]:
        if line.offer_id:
            offer = self.offer_repo.lock_by_id(conn, line.offer_id)
            if (
                offer is None
                or offer.product_id != line.product_id
                or (offer.kind == OfferKind.VARIANT and offer.variant_id != line.variant_id)
                or not offer.sellable
            ):
                raise ValidationError(f"Offer {line.offer_id} is not available for product {line.product_id}.")
            return [offer]

        locked = self.offer_repo.lock_candidates(conn, line.product_id, line.variant_id)
        return candidate_pool(locked, line.product_id, line.variant_id)

    def place_order(self, user_id: str, data: OrderCreate) -> Order:
        """
        Create an order with supplier allocations

        Raises:
            ValidationError: bad input, unknown product, or not enough stock
        """
        self.validate(data)

        product_ids = list(dict.fromkeys(line.product_id for line in data.items))
        titles = self.product_repo.find_titles(product_ids)
        for product_id in product_ids:
            if product_id not in titles:
                raise ValidationError(f"Product {product_id} not found.")

        margin = self.settings_service.margin_percent()
        fee_settings = self.settings_service.public_settings()

        with transaction() as conn:
            order = self.order_repo.create(
                conn, user_id, data.shipping_address, data.shipping_address_id, data.notes
            )
            self.order_repo.log_activity(
                order.id, "ORDER_CREATED", "Order created",
                {"items": len(data.items)}, conn=conn
            )
            if data.notes:
                self.order_repo.log_activity(order.id, "NOTE", data.notes, conn=conn)

            remaining = {}
            subtotal = Decimal("0")
            suppliers = []

            for line in data.items:
                candidates = self._candidates(conn, line)
                available = sum(remaining.get(o.id, o.available_qty) for o in candidates)
                if available < line.qty:
                    raise InsufficientStockError(line.product_id, line.qty, available)

                for offer, take in allocate_greedy(candidates, line.qty, remaining):
                    if self.offer_repo.decrement(conn, offer, take) is None:
                        raise ValidationError("Concurrent stock update detected.")

                    unit_price = apply_margin(offer.unit_price, margin)
                    line_total = round2(unit_price * take)
                    self.order_repo.add_item(
                        conn,
                        order_id=order.id,
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        title=titles[line.product_id],
                        unit_price=unit_price,
                        quantity=take,
                        line_total=line_total,
                        selected_options=line.selected_options,
                        offer_id=offer.id,
                        supplier_id=offer.supplier_id,
                        supplier_unit_price=offer.unit_price,
                    )
                    subtotal += line_total
                    if offer.supplier_id not in suppliers:
                        suppliers.append(offer.supplier_id)

            summary = compute_summary(subtotal, len(suppliers), fee_settings)
            self.order_repo.update_totals(conn, order.id, {
                "subtotal": summary.subtotal,
                "tax": summary.tax,
                "service_fee_base": summary.service_fee_base,
                "service_fee_comms": summary.service_fee_comms,
                "service_fee_gateway": summary.service_fee_gateway,
                "service_fee_total": summary.service_fee_total,
                "total": summary.total,
            })
            order = self.order_repo.find_by_id(order.id, conn=conn)

        logger.info(f"Order {order.id} created: {len(order.items)} items, {len(suppliers)} suppliers, total {order.total}")
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_orders(self, limit: int = 50, search: Optional[str] = None) -> List[Order]:
        limit = max(1, min(limit or 50, MAX_LIST_LIMIT))
        return self.order_repo.find_all(limit=limit, search=(search or "").strip() or None)

    def my_orders(self, user_id: str) -> List[Order]:
        return self.order_repo.find_for_user(user_id)

    def get_order(self, order_id: str, user: TokenUser) -> Order:
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.user_id != user.id and not is_admin(user):
            raise ForbiddenError("Forbidden")
        return order

    def summary(self, user_id: str) -> dict:
        data = self.order_repo.summary_for_user(user_id)
        return {
            "ordersCount": data["orders_count"],
            "totalSpent": float(data["total_spent"] or 0),
            "recent": [order.to_dict() for order in data["recent"]],
        }

    def profit(self, order_id: str) -> dict:
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return compute_profit(order, self.payment_repo.paid_for_order(order_id))
