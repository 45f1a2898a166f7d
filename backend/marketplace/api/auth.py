"""
Authentication API endpoints
- Registration and login (JWT + httpOnly cookie)
- Device session management
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from marketplace.core.auth import TokenUser, get_current_user, get_current_user_optional
from marketplace.core.config import settings
from marketplace.core.exceptions import MarketplaceError
from marketplace.core.rate_limit import client_ip
from marketplace.domain.account import LoginRequest, RegisterRequest, SessionRename
from marketplace.services.account_service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_account_service() -> AccountService:
    return AccountService()


# =============================================================================
# Registration / Login
# =============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    service: AccountService = Depends(get_account_service)
):
    """Create a SHOPPER or SUPPLIER account"""
    try:
        user = service.register(data)
        return {
            "status": "success",
            "data": user.to_public()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error registering user: {str(e)}")


@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    service: AccountService = Depends(get_account_service)
):
    """Verify credentials, open a session and set the access_token cookie"""
    try:
        result = service.login(data, ip=client_ip(request), user_agent=request.headers.get("user-agent"))
        response.set_cookie(
            key=settings.AUTH_COOKIE_NAME,
            value=result["token"],
            httponly=True,
            secure=settings.AUTH_COOKIE_SECURE,
            samesite="lax",
            max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )
        return {
            "status": "success",
            "data": {
                "token": result["token"],
                "user": result["user"].to_public(),
                "sid": result["sid"],
            }
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Login failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error signing in: {str(e)}")


@router.post("/logout")
async def logout(
    response: Response,
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    service: AccountService = Depends(get_account_service)
):
    """Revoke the current session (if any) and clear the cookie"""
    try:
        service.logout(user)
    except Exception as e:
        logger.warning(f"Could not revoke session on logout: {e}")
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return {"ok": True}


@router.get("/session")
async def get_session(
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    service: AccountService = Depends(get_account_service)
):
    """Current user and session id, or nulls when anonymous"""
    try:
        account = service.me(user)
        return {
            "status": "success",
            "data": {
                "user": account.to_public() if account else None,
                "sid": user.sid if user and account else None,
            }
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading session: {str(e)}")


@router.get("/me")
async def get_me(
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    service: AccountService = Depends(get_account_service)
):
    try:
        account = service.me(user)
        return {
            "status": "success",
            "data": account.to_public() if account else None
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading user: {str(e)}")


# =============================================================================
# Device Sessions
# =============================================================================

@router.get("/sessions")
async def list_sessions(
    user: TokenUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        return {
            "status": "success",
            "data": service.list_sessions(user)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing sessions: {str(e)}")


@router.post("/sessions/revoke-others")
async def revoke_other_sessions(
    user: TokenUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        revoked = service.revoke_others(user)
        return {"ok": True, "revoked": revoked}
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error revoking sessions: {str(e)}")


@router.delete("/sessions/{session_id}")
async def revoke_session(
    session_id: str,
    user: TokenUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        service.revoke_session(user, session_id)
        return {"ok": True}
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error revoking session: {str(e)}")


@router.patch("/sessions/{session_id}")
async def rename_session(
    session_id: str,
    data: SessionRename,
    user: TokenUser = Depends(get_current_user),
    service: AccountService = Depends(get_account_service)
):
    try:
        session = service.rename_session(user, session_id, data.device_name)
        return {
            "status": "success",
            "data": session.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error renaming session: {str(e)}")
