"""
Orders API Endpoints
Order placement with supplier allocation, plus order queries
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marketplace.core.auth import TokenUser, get_current_user, require_admin, require_super_admin
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.order import OrderCreate
from marketplace.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_order_service() -> OrderService:
    return OrderService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    user: TokenUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """
    Place an order

    Each line is allocated cheapest-first across supplier offers and the
    offers' stock is decremented in the same transaction. Prices sent by the
    client are ignored.
    """
    try:
        order = service.place_order(user.id, data)
        return {
            "status": "success",
            "data": order.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Order placement failed for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating order: {str(e)}")


@router.get("")
async def list_orders(
    limit: int = Query(50, ge=1, le=100),
    q: Optional[str] = Query(None, description="Order id or customer email"),
    user: TokenUser = Depends(require_admin),
    service: OrderService = Depends(get_order_service)
):
    """All orders, newest first (admin only)"""
    try:
        orders = service.list_orders(limit=limit, search=q)
        return {
            "status": "success",
            "count": len(orders),
            "data": [order.to_dict() for order in orders]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/mine")
async def my_orders(
    user: TokenUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    try:
        return {
            "status": "success",
            "data": [order.to_dict() for order in service.my_orders(user.id)]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/summary")
async def order_summary(
    user: TokenUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    """Order count, total spent and the latest orders for the dashboard"""
    try:
        return {
            "status": "success",
            "data": service.summary(user.id)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching order summary: {str(e)}")


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: TokenUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service)
):
    try:
        return {
            "status": "success",
            "data": service.get_order(order_id, user).to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching order: {str(e)}")


@router.get("/{order_id}/profit")
async def order_profit(
    order_id: str,
    user: TokenUser = Depends(require_super_admin),
    service: OrderService = Depends(get_order_service)
):
    """Revenue, cost of goods and fees for one order"""
    try:
        return {
            "status": "success",
            "data": service.profit(order_id)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error computing profit: {str(e)}")
