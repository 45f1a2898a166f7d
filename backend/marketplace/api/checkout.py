"""
Checkout API Endpoints
Totals, tax and service fees for a basket
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.pricing import QuoteRequest
from marketplace.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_checkout_service() -> CheckoutService:
    return CheckoutService()


@router.post("/summary")
async def checkout_summary(
    request: QuoteRequest,
    service: CheckoutService = Depends(get_checkout_service)
):
    """
    Subtotal, tax and service fee breakdown for the basket

    Same computation as order placement, so the shopper sees the total
    they will be charged.
    """
    try:
        result = service.summary(request.items)
        data = result["summary"].to_dict()
        data["lines"] = [line.to_dict() for line in result["quote"].lines]
        return {
            "status": "success",
            "data": data
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Checkout summary failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing checkout summary: {str(e)}")
