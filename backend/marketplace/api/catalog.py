"""
Catalog API Endpoints
Retail quotes built from supplier offers
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from marketplace.api.availability import get_pricing_service
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.pricing import QuoteRequest
from marketplace.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/quote")
async def create_quote(
    request: QuoteRequest,
    service: PricingService = Depends(get_pricing_service)
):
    """
    Price a basket cheapest-first across suppliers

    Lines that cannot be fully allocated carry a warning; the quote is
    still returned.
    """
    try:
        quote = service.quote(request.items)
        return {
            "status": "success",
            "data": quote.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Quote failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error building quote: {str(e)}")
