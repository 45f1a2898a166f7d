"""
Offer Repository - supplier offers for base products and variants

Base offers live in supplier_product_offers (price column base_price) and
variant offers in supplier_variant_offers (price column unit_price). Both
come back as Offer domain models with a common unit_price.
"""
import logging
from typing import Any, Dict, List, Optional

from marketplace.domain.catalog import Offer, OfferKind, OfferTerms
from marketplace.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

OFFER_TABLES = {
    OfferKind.BASE: "supplier_product_offers",
    OfferKind.VARIANT: "supplier_variant_offers",
}
OFFER_WRITABLE = ("unit_price", "available_qty", "in_stock", "is_active", "lead_days")

BASE_OFFER_SELECT = """
    SELECT
        o.id, 'BASE' AS kind, o.supplier_id, s.name AS supplier_name,
        o.product_id, NULL::text AS variant_id, o.base_price AS unit_price,
        o.available_qty, o.in_stock, o.is_active, o.lead_days
    FROM supplier_product_offers o
    JOIN suppliers s ON s.id = o.supplier_id
"""

VARIANT_OFFER_SELECT = """
    SELECT
        o.id, 'VARIANT' AS kind, o.supplier_id, s.name AS supplier_name,
        o.product_id, o.variant_id, o.unit_price,
        o.available_qty, o.in_stock, o.is_active, o.lead_days
    FROM supplier_variant_offers o
    JOIN suppliers s ON s.id = o.supplier_id
"""


class OfferRepository(BaseRepository):
    """
    Repository for supplier offers

    Read methods return every offer (active or not); callers decide what is
    sellable. Locking methods are for use inside an order transaction.
    """

    @staticmethod
    def _map_row_to_offer(row: dict) -> Offer:
        return Offer(
            id=row['id'],
            kind=OfferKind(row['kind']),
            supplier_id=row['supplier_id'],
            supplier_name=row.get('supplier_name'),
            product_id=row['product_id'],
            variant_id=row.get('variant_id'),
            unit_price=row['unit_price'],
            available_qty=row.get('available_qty') or 0,
            in_stock=bool(row.get('in_stock')),
            is_active=bool(row.get('is_active')),
            lead_days=row.get('lead_days'),
        )

    def find_by_products(self, product_ids: List[str], conn=None) -> List[Offer]:
        """
        All base and variant offers for the given products

        Args:
            product_ids: Product IDs

        Returns:
            List of Offer (base offers first)
        """
        if not product_ids:
            return []

        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                {BASE_OFFER_SELECT}
                WHERE o.product_id = ANY(%s)
                UNION ALL
                {VARIANT_OFFER_SELECT}
                WHERE o.product_id = ANY(%s)
            """, (list(product_ids), list(product_ids)))

            return [self._map_row_to_offer(row) for row in cursor.fetchall()]

    def lock_candidates(self, conn, product_id: str, variant_id: Optional[str]) -> List[Offer]:
        """
        Lock the active, in-stock offers that can serve a line

        Variant lines may draw on both the variant's offers and the product's
        base offers; base lines only on base offers.
        """
        offers: List[Offer] = []
        with self._cursor(conn) as cursor:
            if variant_id:
                cursor.execute(f"""
                    {VARIANT_OFFER_SELECT}
                    WHERE o.variant_id = %s AND o.product_id = %s
                      AND o.is_active = TRUE AND o.in_stock = TRUE AND o.available_qty > 0
                    FOR UPDATE OF o
                """, (variant_id, product_id))
                offers.extend(self._map_row_to_offer(row) for row in cursor.fetchall())

            cursor.execute(f"""
                {BASE_OFFER_SELECT}
                WHERE o.product_id = %s
                  AND o.is_active = TRUE AND o.in_stock = TRUE AND o.available_qty > 0
                FOR UPDATE OF o
            """, (product_id,))
            offers.extend(self._map_row_to_offer(row) for row in cursor.fetchall())

        return offers

    def lock_by_id(self, conn, offer_id: str) -> Optional[Offer]:
        """Lock one offer by id, looking in both offer tables"""
        with self._cursor(conn) as cursor:
            for select in (VARIANT_OFFER_SELECT, BASE_OFFER_SELECT):
                cursor.execute(f"{select} WHERE o.id = %s FOR UPDATE OF o", (offer_id,))
                row = cursor.fetchone()
                if row:
                    return self._map_row_to_offer(row)
        return None

    def decrement(self, conn, offer: Offer, qty: int) -> Optional[int]:
        """
        Take qty units from an offer; in_stock flips to false at zero.

        Returns:
            Remaining quantity, or None when the offer no longer has qty units
        """
        table = OFFER_TABLES[offer.kind]
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                UPDATE {table}
                SET available_qty = available_qty - %s,
                    in_stock = (available_qty - %s) > 0,
                    updated_at = NOW()
                WHERE id = %s AND available_qty >= %s
                RETURNING available_qty
            """, (qty, qty, offer.id, qty))
            row = cursor.fetchone()

        if row is None:
            logger.warning(f"Stock guard failed for offer {offer.id} (wanted {qty})")
            return None
        return row['available_qty']

    def active_supplier_ids(self, product_ids: List[str]) -> List[str]:
        """Distinct suppliers holding an active offer on any of the products"""
        if not product_ids:
            return []

        with self._cursor() as cursor:
            cursor.execute("""
                SELECT DISTINCT supplier_id FROM (
                    SELECT supplier_id FROM supplier_product_offers
                    WHERE product_id = ANY(%s) AND is_active = TRUE
                    UNION
                    SELECT supplier_id FROM supplier_variant_offers
                    WHERE product_id = ANY(%s) AND is_active = TRUE
                ) s
            """, (list(product_ids), list(product_ids)))
            return [row['supplier_id'] for row in cursor.fetchall()]


    # Offer management

    def find_by_id(self, offer_id: str) -> Optional[Offer]:
        """One offer by id from either table"""
        with self._cursor() as cursor:
            for select in (BASE_OFFER_SELECT, VARIANT_OFFER_SELECT):
                cursor.execute(f"{select} WHERE o.id = %s", (offer_id,))
                row = cursor.fetchone()
                if row:
                    return self._map_row_to_offer(row)
        return None

    def find_for_supplier(self, supplier_id: str) -> List[Offer]:
        """A supplier's base and variant offers, active or not"""
        with self._cursor() as cursor:
            cursor.execute(f"""
                {BASE_OFFER_SELECT}
                WHERE o.supplier_id = %s
                UNION ALL
                {VARIANT_OFFER_SELECT}
                WHERE o.supplier_id = %s
            """, (supplier_id, supplier_id))
            return [self._map_row_to_offer(row) for row in cursor.fetchall()]

    def upsert_base_offer(self, supplier_id: str, product_id: str, terms: OfferTerms) -> Offer:
        """Create or replace the supplier's single offer on a base product"""
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO supplier_product_offers
                    (supplier_id, product_id, base_price, available_qty, in_stock, is_active, lead_days)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (supplier_id, product_id) DO UPDATE SET
                    base_price = EXCLUDED.base_price,
                    available_qty = EXCLUDED.available_qty,
                    in_stock = EXCLUDED.in_stock,
                    is_active = EXCLUDED.is_active,
                    lead_days = EXCLUDED.lead_days,
                    updated_at = NOW()
                RETURNING id
            """, (supplier_id, product_id, terms.unit_price, terms.available_qty,
                  terms.in_stock, terms.is_active, terms.lead_days))
            offer_id = cursor.fetchone()['id']
            cursor.execute(f"{BASE_OFFER_SELECT} WHERE o.id = %s", (offer_id,))
            return self._map_row_to_offer(cursor.fetchone())

    def upsert_variant_offer(self, supplier_id: str, product_id: str, variant_id: str, terms: OfferTerms) -> Offer:
        """Create or replace the supplier's single offer on a variant"""
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO supplier_variant_offers
                    (supplier_id, product_id, variant_id, unit_price, available_qty, in_stock, is_active, lead_days)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (supplier_id, variant_id) DO UPDATE SET
                    unit_price = EXCLUDED.unit_price,
                    available_qty = EXCLUDED.available_qty,
                    in_stock = EXCLUDED.in_stock,
                    is_active = EXCLUDED.is_active,
                    lead_days = EXCLUDED.lead_days,
                    updated_at = NOW()
                RETURNING id
            """, (supplier_id, product_id, variant_id, terms.unit_price, terms.available_qty,
                  terms.in_stock, terms.is_active, terms.lead_days))
            offer_id = cursor.fetchone()['id']
            cursor.execute(f"{VARIANT_OFFER_SELECT} WHERE o.id = %s", (offer_id,))
            return self._map_row_to_offer(cursor.fetchone())

    def update(self, offer: Offer, fields: Dict[str, Any]) -> Optional[Offer]:
        """
        Update price, stock or lead time of an existing offer

        unit_price maps onto base_price for base offers. Unknown keys are
        ignored.
        """
        allowed = {k: v for k, v in fields.items() if k in OFFER_WRITABLE}
        if not allowed:
            return offer

        table = OFFER_TABLES[offer.kind]
        select = BASE_OFFER_SELECT if offer.kind == OfferKind.BASE else VARIANT_OFFER_SELECT
        columns = [
            "base_price" if column == "unit_price" and offer.kind == OfferKind.BASE else column
            for column in allowed
        ]
        set_clause = ", ".join(f"{column} = %s" for column in columns)

        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE {table}
                SET {set_clause}, updated_at = NOW()
                WHERE id = %s
            """, list(allowed.values()) + [offer.id])
            if cursor.rowcount == 0:
                return None
            cursor.execute(f"{select} WHERE o.id = %s", (offer.id,))
            return self._map_row_to_offer(cursor.fetchone())

    def deactivate(self, offer: Offer) -> None:
        """
        Take an offer off sale

        Deactivating a base offer also deactivates the same supplier's
        variant offers on that product. Rows stay for order history.
        """
        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE {OFFER_TABLES[offer.kind]}
                SET is_active = FALSE, updated_at = NOW()
                WHERE id = %s
            """, (offer.id,))
            if offer.kind == OfferKind.BASE:
                cursor.execute("""
                    UPDATE supplier_variant_offers
                    SET is_active = FALSE, updated_at = NOW()
                    WHERE supplier_id = %s AND product_id = %s AND is_active = TRUE
                """, (offer.supplier_id, offer.product_id))
        logger.info(f"Deactivated {offer.kind.value} offer {offer.id} of supplier {offer.supplier_id}")
