"""
Availability API Endpoint
Units on offer and cheapest supplier price per product/variant

Mounted under /api/catalog, /api/products and /api/supplier-offers.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from marketplace.core.exceptions import MarketplaceError
from marketplace.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

router = APIRouter()

TRUE_FLAGS = {"1", "true", "yes", "on"}


def get_pricing_service() -> PricingService:
    return PricingService()


@router.get("/availability")
async def get_availability(
    items: List[str] = Query(default=[], description="productId:variantId pairs, comma separated"),
    include_base: Optional[str] = Query(None, alias="includeBase", description="1 to add base lines for variants"),
    service: PricingService = Depends(get_pricing_service)
):
    """
    Availability for product/variant pairs

    Example: ?items=p1:v1,p2:  (a blank variant means the base product)
    """
    try:
        lines = service.availability(
            items,
            include_base=(include_base or "").strip().lower() in TRUE_FLAGS,
        )
        return {
            "status": "success",
            "data": [line.to_dict() for line in lines]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Availability lookup failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing availability: {str(e)}")
