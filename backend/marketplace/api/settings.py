"""
Settings API Endpoints
Public checkout settings and super-admin key/value management
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from marketplace.core.auth import TokenUser, require_super_admin
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.setting import SettingCreate, SettingUpdate
from marketplace.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings_service() -> SettingsService:
    return SettingsService()


def split_ids(values: List[str]) -> List[str]:
    """Flatten repeated and comma-separated id query values (duplicates kept)"""
    ids = []
    for value in values or []:
        ids.extend(part.strip() for part in str(value).split(",") if part.strip())
    return ids


@router.get("/public")
async def get_public_settings(service: SettingsService = Depends(get_settings_service)):
    """Fee and tax settings shown at checkout"""
    try:
        values = service.public_settings()
        return {
            "status": "success",
            "data": {
                "baseServiceFeeNGN": float(values["base_service_fee_ngn"]),
                "commsUnitCostNGN": float(values["comms_unit_cost_ngn"]),
                "taxMode": values["tax_mode"],
                "taxRatePct": float(values["tax_rate_pct"]),
            }
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reading public settings: {str(e)}")


@router.get("/checkout/service-fee")
async def get_service_fee(
    product_ids: List[str] = Query(default=[], alias="productIds"),
    supplier_ids: List[str] = Query(default=[], alias="supplierIds"),
    service: SettingsService = Depends(get_settings_service)
):
    """Communications fee: unit cost times the suppliers that must be notified"""
    try:
        fee = service.comms_service_fee(split_ids(product_ids), split_ids(supplier_ids))
        return {
            "status": "success",
            "data": {
                "unitFee": float(fee["unit_fee"]),
                "notificationsCount": fee["notifications_count"],
                "suppliersCount": fee["suppliers_count"],
                "serviceFee": float(fee["service_fee"]),
            }
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error computing service fee: {str(e)}")


@router.get("")
async def list_settings(
    user: TokenUser = Depends(require_super_admin),
    service: SettingsService = Depends(get_settings_service)
):
    try:
        return {
            "status": "success",
            "data": [setting.to_dict() for setting in service.list_settings()]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error listing settings: {str(e)}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_setting(
    data: SettingCreate,
    user: TokenUser = Depends(require_super_admin),
    service: SettingsService = Depends(get_settings_service)
):
    try:
        setting = service.create_setting(data)
        logger.info(f"Setting {setting.key} created by {user.email}")
        return {
            "status": "success",
            "data": setting.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating setting: {str(e)}")


@router.get("/{setting_id}")
async def get_setting(
    setting_id: str,
    user: TokenUser = Depends(require_super_admin),
    service: SettingsService = Depends(get_settings_service)
):
    try:
        return {
            "status": "success",
            "data": service.get_setting(setting_id).to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching setting: {str(e)}")


@router.patch("/{setting_id}")
async def update_setting(
    setting_id: str,
    data: SettingUpdate,
    user: TokenUser = Depends(require_super_admin),
    service: SettingsService = Depends(get_settings_service)
):
    try:
        setting = service.update_setting(setting_id, data)
        logger.info(f"Setting {setting.key} updated by {user.email}")
        return {
            "status": "success",
            "data": setting.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating setting: {str(e)}")


@router.delete("/{setting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_setting(
    setting_id: str,
    user: TokenUser = Depends(require_super_admin),
    service: SettingsService = Depends(get_settings_service)
):
    try:
        service.delete_setting(setting_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting setting: {str(e)}")
