"""
Payments API Endpoints
Paystack checkout, verification and webhook
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from marketplace.core.auth import TokenUser, get_current_user
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.payment import PaymentInitRequest, PaymentVerifyRequest
from marketplace.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_payment_service() -> PaymentService:
    return PaymentService()


@router.post("/init")
async def init_payment(
    request: PaymentInitRequest,
    user: TokenUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """
    Start a payment for an order

    Returns the Paystack authorization_url to redirect to, or trial /
    bank-transfer instructions depending on configuration.
    """
    try:
        return {
            "status": "success",
            "data": await service.init_payment(user, request)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Payment init failed for order {request.order_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error initializing payment: {str(e)}")


@router.post("/verify")
async def verify_payment(
    request: PaymentVerifyRequest,
    user: TokenUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    try:
        return {
            "status": "success",
            "data": await service.verify_payment(user, request)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Payment verify failed for {request.reference}: {e}")
        raise HTTPException(status_code=500, detail=f"Error verifying payment: {str(e)}")


@router.get("/status")
async def payment_status(
    order_id: Optional[str] = Query(None, alias="orderId"),
    reference: Optional[str] = Query(None),
    user: TokenUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    try:
        payment = service.status(user, order_id, reference)
        return {
            "status": "success",
            "data": payment.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching payment status: {str(e)}")


@router.get("/mine")
async def my_payments(
    user: TokenUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    try:
        return {
            "status": "success",
            "data": [payment.to_dict() for payment in service.mine(user.id)]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching payments: {str(e)}")


@router.get("/summary")
async def payment_summary(
    user: TokenUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    try:
        return {
            "status": "success",
            "data": service.summary(user.id)
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching payment summary: {str(e)}")


@router.post("/webhook/paystack")
async def paystack_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service)
):
    """
    Paystack event webhook

    The signature is checked against the raw body, so the body is read
    before any JSON parsing.
    """
    raw_body = await request.body()
    try:
        result = service.handle_webhook(raw_body, request.headers.get("x-paystack-signature"))
        return {
            "status": "success",
            "data": result
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Paystack webhook failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error processing webhook: {str(e)}")
