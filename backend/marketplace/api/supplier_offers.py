"""
Supplier Offers API Endpoints
A supplier's own base and variant offers (/api/supplier/offers)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from marketplace.api.admin_products import get_offer_service
from marketplace.core.auth import TokenUser, require_role
from marketplace.core.exceptions import MarketplaceError, ValidationError
from marketplace.domain.catalog import OfferUpdate, SupplierOfferUpsert
from marketplace.services.offer_service import OfferService

logger = logging.getLogger(__name__)

router = APIRouter()

require_supplier_account = require_role("SUPPLIER")


@router.get("")
async def list_my_offers(
    user: TokenUser = Depends(require_supplier_account),
    service: OfferService = Depends(get_offer_service)
):
    try:
        offers = service.list_for_supplier(user)
        return {
            "status": "success",
            "count": len(offers),
            "data": [offer.to_dict() for offer in offers]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching offers: {str(e)}")


@router.put("/base")
async def upsert_base_offer(
    data: SupplierOfferUpsert,
    user: TokenUser = Depends(require_supplier_account),
    service: OfferService = Depends(get_offer_service)
):
    """Create or replace the caller's offer on a base product"""
    try:
        if data.variant_id:
            raise ValidationError("Use /variant for variant offers")
        offer = service.upsert_for_supplier(user, data)
        return {
            "status": "success",
            "data": offer.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Base offer upsert failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error saving offer: {str(e)}")


@router.put("/variant")
async def upsert_variant_offer(
    data: SupplierOfferUpsert,
    user: TokenUser = Depends(require_supplier_account),
    service: OfferService = Depends(get_offer_service)
):
    """Create or replace the caller's offer on one variant"""
    try:
        if not data.variant_id:
            raise ValidationError("variantId is required")
        offer = service.upsert_for_supplier(user, data)
        return {
            "status": "success",
            "data": offer.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Variant offer upsert failed for {user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error saving offer: {str(e)}")


@router.patch("/{offer_id}")
async def update_my_offer(
    offer_id: str,
    data: OfferUpdate,
    user: TokenUser = Depends(require_supplier_account),
    service: OfferService = Depends(get_offer_service)
):
    try:
        offer = service.update_offer(user, offer_id, data)
        return {
            "status": "success",
            "data": offer.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating offer: {str(e)}")


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_offer(
    offer_id: str,
    user: TokenUser = Depends(require_supplier_account),
    service: OfferService = Depends(get_offer_service)
):
    """Deactivates the offer; removing a base offer also deactivates the caller's variant offers on that product"""
    try:
        service.remove_offer(user, offer_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting offer: {str(e)}")
