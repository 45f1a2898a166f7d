"""
Refunds API Endpoints
Shopper requests (/api/refunds), supplier review (/api/supplier/refunds)
and admin resolution (/api/admin/refunds)
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from marketplace.core.auth import TokenUser, get_current_user, require_admin, require_role
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.refund import RefundAction, RefundCreate
from marketplace.services.refund_service import RefundService

logger = logging.getLogger(__name__)

router = APIRouter()
supplier_router = APIRouter()
admin_router = APIRouter()


def get_refund_service() -> RefundService:
    return RefundService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_refund(
    data: RefundCreate,
    user: TokenUser = Depends(get_current_user),
    service: RefundService = Depends(get_refund_service)
):
    """Open one refund per purchase order of the order (or just the given one)"""
    try:
        refunds = service.create(user, data)
        return {
            "status": "success",
            "data": [refund.to_dict() for refund in refunds]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Refund request failed for order {data.order_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating refund: {str(e)}")


@router.get("/mine")
async def my_refunds(
    user: TokenUser = Depends(get_current_user),
    service: RefundService = Depends(get_refund_service)
):
    try:
        return {
            "status": "success",
            "data": [refund.to_dict() for refund in service.mine(user.id)]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching refunds: {str(e)}")


@supplier_router.patch("/{refund_id}")
async def supplier_refund_action(
    refund_id: str,
    action: RefundAction,
    user: TokenUser = Depends(require_role("SUPPLIER")),
    service: RefundService = Depends(get_refund_service)
):
    """ACCEPT or REJECT a refund under supplier review"""
    try:
        refund = service.supplier_respond(user, refund_id, action)
        return {
            "status": "success",
            "data": refund.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating refund: {str(e)}")


@admin_router.patch("/{refund_id}")
async def admin_refund_action(
    refund_id: str,
    action: RefundAction,
    user: TokenUser = Depends(require_admin),
    service: RefundService = Depends(get_refund_service)
):
    """APPROVE, REJECT or MARK_REFUNDED"""
    try:
        refund = service.admin_resolve(user, refund_id, action)
        return {
            "status": "success",
            "data": refund.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Admin refund action failed for {refund_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error updating refund: {str(e)}")
