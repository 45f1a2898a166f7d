"""
Admin Products API Endpoints
Product, variant and per-product offer management (/api/admin/products)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from marketplace.api.products import get_catalog_service
from marketplace.core.auth import TokenUser, require_admin
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.catalog import (
    AdminOfferCreate,
    OfferUpdate,
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)
from marketplace.services.catalog_service import CatalogService
from marketplace.services.offer_service import OfferService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_offer_service() -> OfferService:
    return OfferService()


# =============================================================================
# Products
# =============================================================================

@router.get("")
async def list_products(
    q: Optional[str] = Query(None, description="Search by title"),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    limit: int = Query(24, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    """Active and inactive products; deleted ones are never listed"""
    try:
        products, total = service.list_products_admin(search=q, category_id=category_id, limit=limit, offset=offset)
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
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        product = service.create_product(data)
        return {
            "status": "success",
            "data": product.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Product create failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating product: {str(e)}")


@router.patch("/{product_id}")
async def update_product(
    product_id: str,
    data: ProductUpdate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    """Edit title, description, category, retail price or isActive"""
    try:
        product = service.update_product(product_id, data)
        return {
            "status": "success",
            "data": product.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating product: {str(e)}")


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    """Soft delete; past orders still resolve the product"""
    try:
        service.delete_product(product_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Product delete failed for {product_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error deleting product: {str(e)}")


# =============================================================================
# Variants
# =============================================================================

@router.post("/{product_id}/variants", status_code=status.HTTP_201_CREATED)
async def create_variant(
    product_id: str,
    data: VariantCreate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        variant = service.create_variant(product_id, data)
        return {
            "status": "success",
            "data": variant.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating variant: {str(e)}")


@router.patch("/variants/{variant_id}")
async def update_variant(
    variant_id: str,
    data: VariantUpdate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    """Edit SKU, retail price or isActive; options, when sent, replace the set"""
    try:
        variant = service.update_variant(variant_id, data)
        return {
            "status": "success",
            "data": variant.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating variant: {str(e)}")


@router.delete("/variants/{variant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_variant(
    variant_id: str,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        service.delete_variant(variant_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting variant: {str(e)}")


# =============================================================================
# Offers
# =============================================================================

@router.get("/{product_id}/offers")
async def list_product_offers(
    product_id: str,
    user: TokenUser = Depends(require_admin),
    service: OfferService = Depends(get_offer_service)
):
    """Every supplier's base and variant offers on the product, active or not"""
    try:
        offers = service.list_for_product(product_id)
        return {
            "status": "success",
            "count": len(offers),
            "data": [offer.to_dict() for offer in offers]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching offers: {str(e)}")


@router.post("/{product_id}/offers", status_code=status.HTTP_201_CREATED)
async def create_product_offer(
    product_id: str,
    data: AdminOfferCreate,
    user: TokenUser = Depends(require_admin),
    service: OfferService = Depends(get_offer_service)
):
    try:
        offer = service.create_for_product(product_id, data)
        return {
            "status": "success",
            "data": offer.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Offer create failed on product {product_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating offer: {str(e)}")


@router.put("/{product_id}/offers/{offer_id}")
async def update_product_offer(
    product_id: str,
    offer_id: str,
    data: OfferUpdate,
    user: TokenUser = Depends(require_admin),
    service: OfferService = Depends(get_offer_service)
):
    try:
        offer = service.update_offer(user, offer_id, data, product_id=product_id)
        return {
            "status": "success",
            "data": offer.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating offer: {str(e)}")


@router.delete("/{product_id}/offers/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product_offer(
    product_id: str,
    offer_id: str,
    user: TokenUser = Depends(require_admin),
    service: OfferService = Depends(get_offer_service)
):
    """Deactivates the offer"""
    try:
        service.remove_offer(user, offer_id, product_id=product_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting offer: {str(e)}")
