"""
Categories API Endpoints
Public listing plus admin management
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from marketplace.api.products import get_catalog_service
from marketplace.core.auth import TokenUser, require_admin
from marketplace.core.exceptions import MarketplaceError
from marketplace.domain.catalog import CategoryCreate, CategoryUpdate
from marketplace.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_categories(service: CatalogService = Depends(get_catalog_service)):
    """All categories ordered by name"""
    try:
        return {
            "status": "success",
            "data": [category.to_dict() for category in service.list_categories()]
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching categories: {str(e)}")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        category = service.create_category(data)
        return {
            "status": "success",
            "data": category.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        logger.error(f"Category create failed: {e}")
        raise HTTPException(status_code=500, detail=f"Error creating category: {str(e)}")


@router.patch("/{category_id}")
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        category = service.update_category(category_id, data)
        return {
            "status": "success",
            "data": category.to_dict()
        }
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating category: {str(e)}")


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    user: TokenUser = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service)
):
    try:
        service.delete_category(category_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (HTTPException, MarketplaceError):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting category: {str(e)}")
