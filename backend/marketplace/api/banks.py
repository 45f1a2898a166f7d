"""
Banks API Endpoint
Nigerian banks for payout account setup
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from marketplace.services.bank_service import BankService, get_bank_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_banks(service: BankService = Depends(get_bank_service)):
    """NGN nuban banks from Paystack (cached), or a built-in fallback list"""
    try:
        banks = await service.list_banks()
        return {
            "status": "success",
            "data": [bank.to_dict() for bank in banks]
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching banks: {str(e)}")
