"""
Notifications API Endpoints
In-app notification feed for the signed-in user
"""
from fastapi import APIRouter, Depends, HTTPException, Query

from marketplace.core.auth import TokenUser, get_current_user
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.account import MarkReadRequest
from marketplace.services.notification_service import NotificationService

router = APIRouter()


def get_notification_service() -> NotificationService:
    return NotificationService()


@router.get("")
async def list_notifications(
    limit: int = Query(20, ge=1, le=50),
    user: TokenUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    try:
        return {
            "status": "success",
            "data": service.list_for_user(user.id, limit)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching notifications: {str(e)}")


@router.post("/read")
async def mark_notifications_read(
    request: MarkReadRequest,
    user: TokenUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    """Mark everything ({"all": true}) or the given ids as read"""
    try:
        updated = service.mark_read(user.id, all=request.all, ids=request.ids)
        return {"ok": True, "updated": updated}
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating notifications: {str(e)}")
