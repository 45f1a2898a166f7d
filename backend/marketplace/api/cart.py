"""
Cart API Endpoints
Server-side pricing for cart lines
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from marketplace.core.auth import TokenUser, get_current_user_optional
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.pricing import CartItemRequest
from marketplace.services.cart_service import PREVIEW_NOTE, CartService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_cart_service() -> CartService:
    return CartService()


@router.post("/items")
async def add_cart_item(
    request: CartItemRequest,
    response: Response,
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    service: CartService = Depends(get_cart_service)
):
    """
    Price a cart line from the cheapest supplier offer

    Without orderId the priced line is returned as a preview. With orderId
    the line is stored on that (still unpaid) order and 201 is returned.
    """
    try:
        line, item = service.add_item(request, user)
        if item is None:
            return {
                "status": "success",
                "data": line.to_dict(),
                "note": PREVIEW_NOTE
            }

        response.status_code = status.HTTP_201_CREATED
        data = item.to_dict()
        data["pricing"] = line.pricing.to_dict()
        return {
            "status": "success",
            "data": data
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Cart pricing failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error pricing cart item: {str(e)}")
