"""
Purchase Orders API Endpoints
Supplier fulfillment (/api/supplier/orders) and admin payouts (/api/purchase-orders)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from marketplace.core.auth import TokenUser, require_admin, require_role
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.fulfillment import PurchaseOrderStatusUpdate
from marketplace.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

supplier_router = APIRouter()
admin_router = APIRouter()

require_supplier_user = require_role("SUPPLIER", "SUPPLIER_RIDER", "ADMIN")


def get_fulfillment_service() -> FulfillmentService:
    return FulfillmentService()


# =============================================================================
# Supplier
# =============================================================================

@supplier_router.get("")
async def list_supplier_orders(
    user: TokenUser = Depends(require_supplier_user),
    service: FulfillmentService = Depends(get_fulfillment_service)
):
    """The caller's purchase orders with items (admins see all, read-only)"""
    try:
        orders = service.list_for_supplier(user)
        return {
            "status": "success",
            "count": len(orders),
            "data": [po.to_dict() for po in orders]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching supplier orders: {str(e)}")


@supplier_router.patch("/{po_id}/status")
async def update_supplier_order_status(
    po_id: str,
    update: PurchaseOrderStatusUpdate,
    user: TokenUser = Depends(require_supplier_user),
    service: FulfillmentService = Depends(get_fulfillment_service)
):
    """
    Move a purchase order along PENDING -> CONFIRMED -> PACKED -> SHIPPED -> DELIVERED

    CANCELED is allowed before shipping; a reason is recorded when given.
    """
    try:
        po = service.update_status(user, po_id, update)
        return {
            "status": "success",
            "data": po.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"PO status update failed for {po_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error updating purchase order: {str(e)}")


# =============================================================================
# Admin
# =============================================================================

@admin_router.get("")
async def list_purchase_orders(
    status: Optional[str] = Query(None),
    supplier_id: Optional[str] = Query(None, alias="supplierId"),
    user: TokenUser = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service)
):
    try:
        orders = service.list_all(status=status, supplier_id=supplier_id)
        return {
            "status": "success",
            "count": len(orders),
            "data": [po.to_dict() for po in orders]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching purchase orders: {str(e)}")


@admin_router.post("/{po_id}/release-payout")
async def release_payout(
    po_id: str,
    user: TokenUser = Depends(require_admin),
    service: FulfillmentService = Depends(get_fulfillment_service)
):
    """Credit the supplier ledger for a delivered purchase order"""
    try:
        po = service.release_payout(po_id)
        logger.info(f"Payout for {po.supplier_order_ref} released by {user.email}")
        return {
            "status": "success",
            "data": po.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Payout release failed for {po_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error releasing payout: {str(e)}")
