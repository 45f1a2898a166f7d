"""
Catalog Service - product browsing, admin product/variant management and categories
"""
import logging
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from marketplace.core.exceptions import ConflictError, NotFoundError, ValidationError
from marketplace.domain.catalog import (
    Category,
    CategoryCreate,
    CategoryUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    ProductVariant,
    VariantCreate,
    VariantOption,
    VariantUpdate,
)
from marketplace.repositories.product_repository import CategoryRepository, ProductRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 100


def slugify(name: str) -> str:
    """'Phones & Tablets' -> 'phones-tablets'"""
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug or "category"


def _check_retail_price(price: Optional[Decimal]) -> None:
    if price is not None and price <= 0:
        raise ValidationError("retailPrice must be greater than 0")


def _check_options(options: List[VariantOption]) -> None:
    attributes = [option.attribute_id for option in options]
    if len(set(attributes)) != len(attributes):
        raise ValidationError("Each attribute may appear only once per variant")


class CatalogService:

    def __init__(
        self,
        product_repo: Optional[ProductRepository] = None,
        category_repo: Optional[CategoryRepository] = None
    ):
        self.product_repo = product_repo or ProductRepository()
        self.category_repo = category_repo or CategoryRepository()

    # Products

    def list_products(
        self,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
        offset = max(0, offset or 0)
        return self.product_repo.find_all(
            search=(search or "").strip() or None,
            category_id=category_id,
            limit=limit,
            offset=offset,
        )

    def get_product(self, product_id: str) -> Product:
        product = self.product_repo.find_by_id(product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    # Admin: products

    def list_products_admin(
        self,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        """Like list_products, but inactive products are included"""
        limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
        offset = max(0, offset or 0)
        return self.product_repo.find_all(
            search=(search or "").strip() or None,
            category_id=category_id,
            limit=limit,
            offset=offset,
            active_only=False,
        )

    def create_product(self, data: ProductCreate) -> Product:
        """
        Create a product

        Raises:
            ValidationError: short title or non-positive retail price
            NotFoundError: unknown category
        """
        title = data.title.strip()
        if len(title) < 2:
            raise ValidationError("title must be at least 2 characters")
        _check_retail_price(data.retail_price)
        self._check_category(data.category_id)

        product = self.product_repo.create(data.model_copy(update={"title": title}))
        logger.info(f"Created product {product.id} ({title})")
        return product

    def update_product(self, product_id: str, data: ProductUpdate) -> Product:
        fields = data.model_dump(exclude_unset=True)
        if "title" in fields:
            title = (fields["title"] or "").strip()
            if len(title) < 2:
                raise ValidationError("title must be at least 2 characters")
            fields["title"] = title
        if "retail_price" in fields:
            _check_retail_price(fields["retail_price"])
        if fields.get("category_id"):
            self._check_category(fields["category_id"])

        product = self.product_repo.update(product_id, fields)
        if not product:
            raise NotFoundError("Product not found")
        return product

    def delete_product(self, product_id: str) -> None:
        """Soft delete: the product disappears from the catalog and its offers stop selling"""
        if not self.product_repo.soft_delete(product_id):
            raise NotFoundError("Product not found")
        logger.info(f"Soft-deleted product {product_id}")

    # Admin: variants

    def create_variant(self, product_id: str, data: VariantCreate) -> ProductVariant:
        """
        Add a variant to a live product

        Raises:
            NotFoundError: unknown or deleted product
            ValidationError: non-positive retail price or repeated attribute
            ConflictError: SKU already used
        """
        if not self.product_repo.find_by_id(product_id, with_variants=False):
            raise NotFoundError("Product not found")
        _check_retail_price(data.retail_price)
        _check_options(data.options)
        sku = self._clean_sku(data.sku)

        variant = self.product_repo.create_variant(product_id, data.model_copy(update={"sku": sku}))
        logger.info(f"Created variant {variant.id} on product {product_id}")
        return variant

    def update_variant(self, variant_id: str, data: VariantUpdate) -> ProductVariant:
        fields = data.model_dump(exclude_unset=True, exclude={"options"})
        if "retail_price" in fields:
            _check_retail_price(fields["retail_price"])
        if "sku" in fields:
            fields["sku"] = self._clean_sku(fields["sku"], exclude_id=variant_id)
        if data.options is not None:
            _check_options(data.options)

        variant = self.product_repo.update_variant(variant_id, fields, data.options)
        if not variant:
            raise NotFoundError("Variant not found")
        return variant

    def delete_variant(self, variant_id: str) -> None:
        """Deactivate a variant and its offers; the row stays for order history"""
        if not self.product_repo.update_variant(variant_id, {"is_active": False}):
            raise NotFoundError("Variant not found")

    def _clean_sku(self, sku: Optional[str], exclude_id: Optional[str] = None) -> Optional[str]:
        sku = (sku or "").strip() or None
        if sku and self.product_repo.sku_exists(sku, exclude_id=exclude_id):
            raise ConflictError(f"SKU {sku} already exists")
        return sku

    def _check_category(self, category_id: Optional[str]) -> None:
        if category_id and not self.category_repo.find_by_id(category_id):
            raise NotFoundError("Category not found")

    # Categories

    def list_categories(self) -> List[Category]:
        return self.category_repo.find_all()

    def create_category(self, data: CategoryCreate) -> Category:
        name = data.name.strip()
        if len(name) < 2:
            raise ValidationError("name must be at least 2 characters")
        if self.category_repo.name_exists(name):
            raise ConflictError(f"Category {name} already exists")
        category = self.category_repo.create(name, slugify(name), data.parent_id)
        logger.info(f"Created category {category.id} ({name})")
        return category

    def update_category(self, category_id: str, data: CategoryUpdate) -> Category:
        fields = data.model_dump(exclude_unset=True)
        if "name" in fields:
            name = (fields["name"] or "").strip()
            if len(name) < 2:
                raise ValidationError("name must be at least 2 characters")
            if self.category_repo.name_exists(name, exclude_id=category_id):
                raise ConflictError(f"Category {name} already exists")
            fields["name"] = name
            fields["slug"] = slugify(name)

        category = self.category_repo.update(category_id, fields)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def delete_category(self, category_id: str) -> None:
        if not self.category_repo.soft_delete(category_id):
            raise NotFoundError("Category not found")
