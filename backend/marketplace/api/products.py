"""
Products API Endpoints
Public product catalog
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from marketplace.core.exceptions import MarketplaceError
from marketplace.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_catalog_service() -> CatalogService:
    return CatalogService()


@router.get("")
async def get_products(
    q: Optional[str] = Query(None, description="Search by title"),
    category_id: Optional[str] = Query(None, alias="categoryId", description="Filter by category"),
    limit: int = Query(24, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: CatalogService = Depends(get_catalog_service)
):
    """Active products, newest first"""
    try:
        products, total = service.list_products(search=q, category_id=category_id, limit=limit, offset=offset)
        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "data": [product.to_dict() for product in products]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Product listing failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    service: CatalogService = Depends(get_catalog_service)
):
    """Product with its variants and their options"""
    try:
        product = service.get_product(product_id)
        return {
            "status": "success",
            "data": product.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching product: {str(e)}")
