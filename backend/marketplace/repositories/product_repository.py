"""
Product Repository - Data Access Layer for the catalog

Products with their variants and variant options, plus categories.

Date: 2026-02-11
"""
from typing import Any, Dict, List, Optional, Tuple

from marketplace.domain.catalog import (
    Category,
    Product,
    ProductCreate,
    ProductVariant,
    VariantCreate,
    VariantOption,
)
from marketplace.repositories.base import BaseRepository

PRODUCT_COLUMNS = "id, title, description, category_id, retail_price, is_active, created_at"
PRODUCT_WRITABLE = ("title", "description", "category_id", "retail_price", "is_active")
VARIANT_WRITABLE = ("sku", "retail_price", "is_active")


class ProductRepository(BaseRepository):
    """
    Repository for Product data access

    Returns Product domain models, with variants loaded when asked for a
    single product.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        return Product(
            id=row['id'],
            title=row['title'],
            description=row.get('description'),
            category_id=row.get('category_id'),
            retail_price=row.get('retail_price'),
            is_active=row.get('is_active', True),
            created_at=row.get('created_at'),
        )

    def find_by_id(self, product_id: str, with_variants: bool = True, conn=None) -> Optional[Product]:
        """
        Find product by ID

        Args:
            product_id: Product ID
            with_variants: Also load variants and their option pairs

        Returns:
            Product or None if not found
        """
        with self._cursor(conn) as cursor:
            cursor.execute("""
                SELECT id, title, description, category_id, retail_price, is_active, created_at
                FROM products
                WHERE id = %s AND deleted_at IS NULL
            """, (product_id,))

            row = cursor.fetchone()
            if not row:
                return None

            product = self._map_row_to_product(row)
            if with_variants:
                product.variants = self._load_variants(cursor, [product_id]).get(product_id, [])
            return product

    def find_all(
        self,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: int = 24,
        offset: int = 0,
        active_only: bool = True
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters; soft-deleted products never match

        Args:
            search: Case-insensitive match on title
            category_id: Filter by category
            limit: Maximum results to return
            offset: Pagination offset
            active_only: Skip products with is_active = FALSE

        Returns:
            (products, total matching count)
        """
        conditions = ["deleted_at IS NULL"]
        if active_only:
            conditions.append("is_active = TRUE")
        params: list = []

        if search:
            conditions.append("title ILIKE %s")
            params.append(f"%{search}%")
        if category_id:
            conditions.append("category_id = %s")
            params.append(category_id)

        where_clause = " AND ".join(conditions)

        with self._cursor() as cursor:
            cursor.execute(f"SELECT COUNT(*) AS total FROM products WHERE {where_clause}", params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT id, title, description, category_id, retail_price, is_active, created_at
                FROM products
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            products = [self._map_row_to_product(row) for row in cursor.fetchall()]
            return products, total

    def find_titles(self, product_ids: List[str], conn=None) -> Dict[str, str]:
        """Map product id -> title for the given ids"""
        if not product_ids:
            return {}
        with self._cursor(conn) as cursor:
            cursor.execute(
                "SELECT id, title FROM products WHERE id = ANY(%s)",
                (list(product_ids),)
            )
            return {row['id']: row['title'] for row in cursor.fetchall()}

    def create(self, data: ProductCreate) -> Product:
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO products (title, description, category_id, retail_price, is_active)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {PRODUCT_COLUMNS}
            """, (data.title, data.description, data.category_id, data.retail_price, data.is_active))
            return self._map_row_to_product(cursor.fetchone())

    def update(self, product_id: str, fields: Dict[str, Any]) -> Optional[Product]:
        """
        Update the given columns of a live product

        Unknown keys are ignored.

        Returns:
            Updated Product (without variants) or None if missing or deleted
        """
        allowed = {k: v for k, v in fields.items() if k in PRODUCT_WRITABLE}
        if not allowed:
            return self.find_by_id(product_id, with_variants=False)

        set_clause = ", ".join(f"{column} = %s" for column in allowed)
        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE products
                SET {set_clause}, updated_at = NOW()
                WHERE id = %s AND deleted_at IS NULL
                RETURNING {PRODUCT_COLUMNS}
            """, list(allowed.values()) + [product_id])
            row = cursor.fetchone()
            return self._map_row_to_product(row) if row else None

    def soft_delete(self, product_id: str) -> bool:
        """
        Mark a product deleted and inactive, and deactivate every offer on it

        Order history keeps pointing at the row. Returns False when the
        product is missing or already deleted.
        """
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE products
                SET is_active = FALSE, deleted_at = NOW(), updated_at = NOW()
                WHERE id = %s AND deleted_at IS NULL
            """, (product_id,))
            if cursor.rowcount == 0:
                return False

            for table in ("supplier_product_offers", "supplier_variant_offers"):
                cursor.execute(f"""
                    UPDATE {table}
                    SET is_active = FALSE, updated_at = NOW()
                    WHERE product_id = %s AND is_active = TRUE
                """, (product_id,))
            return True

    # Variants

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        with self._cursor() as cursor:
            return self._variant_by_id(cursor, variant_id)

    def sku_exists(self, sku: str, exclude_id: Optional[str] = None) -> bool:
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT 1 FROM product_variants
                WHERE sku = %s AND (%s::text IS NULL OR id <> %s)
            """, (sku, exclude_id, exclude_id))
            return cursor.fetchone() is not None

    def create_variant(self, product_id: str, data: VariantCreate) -> ProductVariant:
        """Insert a variant and its option pairs in one transaction"""
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO product_variants (product_id, sku, retail_price, is_active)
                VALUES (%s, %s, %s, %s)
                RETURNING id
            """, (product_id, data.sku, data.retail_price, data.is_active))
            variant_id = cursor.fetchone()['id']
            self._write_options(cursor, variant_id, data.options)
            return self._variant_by_id(cursor, variant_id)

    def update_variant(
        self,
        variant_id: str,
        fields: Dict[str, Any],
        options: Optional[List[VariantOption]] = None
    ) -> Optional[ProductVariant]:
        """
        Update variant columns; a non-None options list replaces the option set

        Deactivating a variant also deactivates its offers.

        Returns:
            Updated ProductVariant or None if not found
        """
        allowed = {k: v for k, v in fields.items() if k in VARIANT_WRITABLE}
        with self._cursor() as cursor:
            set_clause = "".join(f"{column} = %s, " for column in allowed)
            cursor.execute(f"""
                UPDATE product_variants
                SET {set_clause}updated_at = NOW()
                WHERE id = %s
            """, list(allowed.values()) + [variant_id])
            if cursor.rowcount == 0:
                return None

            if allowed.get('is_active') is False:
                cursor.execute("""
                    UPDATE supplier_variant_offers
                    SET is_active = FALSE, updated_at = NOW()
                    WHERE variant_id = %s AND is_active = TRUE
                """, (variant_id,))

            if options is not None:
                cursor.execute("DELETE FROM product_variant_options WHERE variant_id = %s", (variant_id,))
                self._write_options(cursor, variant_id, options)

            return self._variant_by_id(cursor, variant_id)

    @staticmethod
    def _write_options(cursor, variant_id: str, options: List[VariantOption]) -> None:
        for option in options:
            cursor.execute("""
                INSERT INTO product_variant_options (variant_id, attribute_id, value_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (variant_id, attribute_id) DO UPDATE SET value_id = EXCLUDED.value_id
            """, (variant_id, option.attribute_id, option.value_id))

    @staticmethod
    def _variant_by_id(cursor, variant_id: str) -> Optional[ProductVariant]:
        cursor.execute("SELECT product_id FROM product_variants WHERE id = %s", (variant_id,))
        row = cursor.fetchone()
        if not row:
            return None
        variants = ProductRepository._load_variants(cursor, [row['product_id']]).get(row['product_id'], [])
        return next((v for v in variants if v.id == variant_id), None)

    @staticmethod
    def _load_variants(cursor, product_ids: List[str]) -> Dict[str, List[ProductVariant]]:
        cursor.execute("""
            SELECT id, product_id, sku, retail_price, is_active
            FROM product_variants
            WHERE product_id = ANY(%s)
            ORDER BY created_at, id
        """, (list(product_ids),))
        variant_rows = cursor.fetchall()
        if not variant_rows:
            return {}

        cursor.execute("""
            SELECT variant_id, attribute_id, value_id
            FROM product_variant_options
            WHERE variant_id = ANY(%s)
        """, ([row['id'] for row in variant_rows],))

        options: Dict[str, List[VariantOption]] = {}
        for row in cursor.fetchall():
            options.setdefault(row['variant_id'], []).append(
                VariantOption(attribute_id=row['attribute_id'], value_id=row['value_id'])
            )

        by_product: Dict[str, List[ProductVariant]] = {}
        for row in variant_rows:
            by_product.setdefault(row['product_id'], []).append(ProductVariant(
                id=row['id'],
                product_id=row['product_id'],
                sku=row.get('sku'),
                retail_price=row.get('retail_price'),
                is_active=row.get('is_active', True),
                options=options.get(row['id'], []),
            ))
        return by_product


class CategoryRepository(BaseRepository):
    """Repository for product categories"""

    def find_all(self) -> List[Category]:
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT id, name, slug, parent_id, created_at
                FROM categories
                WHERE deleted_at IS NULL
                ORDER BY name ASC
            """)
            return [Category(**row) for row in cursor.fetchall()]

    def find_by_id(self, category_id: str) -> Optional[Category]:
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT id, name, slug, parent_id, created_at
                FROM categories
                WHERE id = %s AND deleted_at IS NULL
            """, (category_id,))
            row = cursor.fetchone()
            return Category(**row) if row else None

    def name_exists(self, name: str, exclude_id: Optional[str] = None) -> bool:
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT 1 FROM categories
                WHERE LOWER(name) = LOWER(%s) AND deleted_at IS NULL
                  AND (%s::text IS NULL OR id <> %s)
            """, (name, exclude_id, exclude_id))
            return cursor.fetchone() is not None

    def create(self, name: str, slug: str, parent_id: Optional[str] = None) -> Category:
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO categories (name, slug, parent_id)
                VALUES (%s, %s, %s)
                RETURNING id, name, slug, parent_id, created_at
            """, (name, slug, parent_id))
            return Category(**cursor.fetchone())

    def update(self, category_id: str, fields: Dict[str, Optional[str]]) -> Optional[Category]:
        """
        Update the given columns (name, slug, parent_id)

        Returns:
            Updated Category or None if not found
        """
        allowed = {k: v for k, v in fields.items() if k in ("name", "slug", "parent_id")}
        if not allowed:
            return self.find_by_id(category_id)

        set_clause = ", ".join(f"{column} = %s" for column in allowed)
        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE categories
                SET {set_clause}, updated_at = NOW()
                WHERE id = %s AND deleted_at IS NULL
                RETURNING id, name, slug, parent_id, created_at
            """, list(allowed.values()) + [category_id])
            row = cursor.fetchone()
            return Category(**row) if row else None

    def soft_delete(self, category_id: str) -> bool:
        """
        Mark a category deleted and detach its products and subcategories

        Returns False when the category is missing or already deleted.
        """
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE categories
                SET deleted_at = NOW(), updated_at = NOW()
                WHERE id = %s AND deleted_at IS NULL
            """, (category_id,))
            if cursor.rowcount == 0:
                return False
            cursor.execute("UPDATE products SET category_id = NULL WHERE category_id = %s", (category_id,))
            cursor.execute("UPDATE categories SET parent_id = NULL WHERE parent_id = %s", (category_id,))
            return True
