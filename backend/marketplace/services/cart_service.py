"""
Cart Service - server-priced cart lines

A cart line is priced from the cheapest supplier offer (see pricing_service).
Without an order the price is only a preview; with an order the line is
written as a PENDING order item of that still-unpaid order.
"""
import logging
from typing import Optional, Tuple

from marketplace.core.auth import TokenUser
from marketplace.core.exceptions import AuthenticationError, ConflictError, ValidationError
from marketplace.domain.order import OrderItem, OrderStatus
from marketplace.domain.pricing import CartItemRequest, CartLine
from marketplace.repositories.order_repository import OrderRepository
from marketplace.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

PREVIEW_NOTE = "Server price authoritative. Pass orderId to persist this line."


class CartService:

    def __init__(
        self,
        pricing_service: Optional[PricingService] = None,
        order_repo: Optional[OrderRepository] = None
    ):
        self.pricing_service = pricing_service or PricingService()
        self.order_repo = order_repo or OrderRepository()

    def add_item(
        self,
        request: CartItemRequest,
        user: Optional[TokenUser]
    ) -> Tuple[CartLine, Optional[OrderItem]]:
        """
        Price a cart line and optionally persist it

        Returns:
            (priced line, stored order item or None for a preview)

        Raises:
            AuthenticationError: orderId given without a signed-in user
            ValidationError: order missing or owned by someone else
            ConflictError: order is past CREATED
        """
        if request.order_id and user is None:
            raise AuthenticationError("Authentication required to add items to an order")

        line = self.pricing_service.price_cart_item(request)
        if not request.order_id:
            return line, None

        order = self.order_repo.find_by_id(request.order_id, with_items=False)
        if not order or order.user_id != user.id:
            raise ValidationError("Order not found")
        if order.status != OrderStatus.CREATED.value:
            raise ConflictError("Order is no longer editable")

        item = self.order_repo.add_item(
            None,
            order_id=order.id,
            product_id=line.product_id,
            variant_id=line.variant_id,
            title=line.title,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
            selected_options=[option.to_dict() for option in line.selected_options] or None,
            offer_id=line.pricing.offer_id,
            supplier_id=line.pricing.supplier_id,
            supplier_unit_price=line.pricing.supplier_price,
        )
        logger.info(f"Cart line {line.product_id} added to order {order.id} ({line.pricing.source})")
        return line, item
