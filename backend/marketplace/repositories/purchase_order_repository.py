"""
Purchase Order Repository - supplier purchase orders and payout ledger
"""
from decimal import Decimal
from typing import Dict, List, Optional

from marketplace.domain.fulfillment import PurchaseOrder, PurchaseOrderItem
from marketplace.repositories.base import BaseRepository

PO_COLUMNS = """
    id, order_id, supplier_id, supplier_order_ref, subtotal, platform_fee,
    supplier_amount, status, payout_status, cancel_reason, confirmed_at,
    packed_at, shipped_at, delivered_at, canceled_at, paid_out_at,
    created_at, updated_at
"""

# Timestamp column stamped when a PO enters a status
STATUS_TIMESTAMPS = {
    "CONFIRMED": "confirmed_at",
    "PACKED": "packed_at",
    "SHIPPED": "shipped_at",
    "DELIVERED": "delivered_at",
    "CANCELED": "canceled_at",
}


class PurchaseOrderRepository(BaseRepository):

    def find_by_id(self, po_id: str, for_update: bool = False, conn=None) -> Optional[PurchaseOrder]:
        lock = "FOR UPDATE" if for_update else ""
        with self._cursor(conn) as cursor:
            cursor.execute(f"SELECT {PO_COLUMNS} FROM purchase_orders WHERE id = %s {lock}", (po_id,))
            row = cursor.fetchone()
            if not row:
                return None
            po = PurchaseOrder(**row)
            po.items = self._items_for(cursor, [po.id]).get(po.id, [])
            return po

    def find_for_order(self, order_id: str, conn=None) -> List[PurchaseOrder]:
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                SELECT {PO_COLUMNS} FROM purchase_orders
                WHERE order_id = %s
                ORDER BY created_at
            """, (order_id,))
            pos = [PurchaseOrder(**row) for row in cursor.fetchall()]
            items = self._items_for(cursor, [po.id for po in pos])
            for po in pos:
                po.items = items.get(po.id, [])
            return pos

    def find_for_supplier(self, supplier_id: str, limit: int = 100) -> List[PurchaseOrder]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {PO_COLUMNS} FROM purchase_orders
                WHERE supplier_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """, (supplier_id, limit))
            pos = [PurchaseOrder(**row) for row in cursor.fetchall()]
            items = self._items_for(cursor, [po.id for po in pos])
            for po in pos:
                po.items = items.get(po.id, [])
            return pos

    def find_all(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[str] = None,
        limit: int = 100
    ) -> List[PurchaseOrder]:
        """Admin listing with optional status/supplier filters"""
        conditions = []
        params: list = []
        if status:
            conditions.append("status = %s")
            params.append(status)
        if supplier_id:
            conditions.append("supplier_id = %s")
            params.append(supplier_id)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {PO_COLUMNS} FROM purchase_orders
                {where_clause}
                ORDER BY created_at DESC
                LIMIT %s
            """, params + [limit])
            return [PurchaseOrder(**row) for row in cursor.fetchall()]

    def ref_exists(self, supplier_order_ref: str, conn=None) -> bool:
        with self._cursor(conn) as cursor:
            cursor.execute(
                "SELECT 1 FROM purchase_orders WHERE supplier_order_ref = %s",
                (supplier_order_ref,)
            )
            return cursor.fetchone() is not None

    def create(
        self,
        conn,
        order_id: str,
        supplier_id: str,
        supplier_order_ref: str,
        subtotal: Decimal,
        platform_fee: Decimal,
        supplier_amount: Decimal,
        order_item_ids: List[str]
    ) -> PurchaseOrder:
        """Insert a PENDING purchase order and one PO item per order item"""
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                INSERT INTO purchase_orders (
                    order_id, supplier_id, supplier_order_ref, subtotal,
                    platform_fee, supplier_amount, status, payout_status
                )
                VALUES (%s, %s, %s, %s, %s, %s, 'PENDING', 'PENDING')
                RETURNING {PO_COLUMNS}
            """, (order_id, supplier_id, supplier_order_ref, subtotal, platform_fee, supplier_amount))
            po = PurchaseOrder(**cursor.fetchone())

            for order_item_id in order_item_ids:
                cursor.execute("""
                    INSERT INTO purchase_order_items (purchase_order_id, order_item_id)
                    VALUES (%s, %s)
                """, (po.id, order_item_id))

            po.items = self._items_for(cursor, [po.id]).get(po.id, [])
            return po

    def update_status(
        self,
        po_id: str,
        status: str,
        reason: Optional[str] = None,
        conn=None
    ) -> Optional[PurchaseOrder]:
        """Set status, stamp its timestamp column and record a cancel reason"""
        stamp = STATUS_TIMESTAMPS.get(status)
        stamp_clause = f", {stamp} = COALESCE({stamp}, NOW())" if stamp else ""
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                UPDATE purchase_orders
                SET status = %s,
                    cancel_reason = COALESCE(%s, cancel_reason),
                    updated_at = NOW()
                    {stamp_clause}
                WHERE id = %s
                RETURNING {PO_COLUMNS}
            """, (status, reason, po_id))
            row = cursor.fetchone()
            return PurchaseOrder(**row) if row else None

    def set_payout_status(self, po_id: str, payout_status: str, conn=None) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE purchase_orders
                SET payout_status = %s,
                    paid_out_at = CASE WHEN %s = 'RELEASED' THEN NOW() ELSE paid_out_at END,
                    updated_at = NOW()
                WHERE id = %s
            """, (payout_status, payout_status, po_id))

    def statuses_for_order(self, order_id: str, conn=None) -> List[str]:
        with self._cursor(conn) as cursor:
            cursor.execute("SELECT status FROM purchase_orders WHERE order_id = %s", (order_id,))
            return [row['status'] for row in cursor.fetchall()]

    def add_ledger_entry(
        self,
        conn,
        supplier_id: str,
        type: str,
        amount: Decimal,
        reference_type: str,
        reference_id: str,
        meta: Optional[dict] = None
    ) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                INSERT INTO supplier_ledger_entries (
                    supplier_id, type, amount, currency, reference_type, reference_id, meta
                )
                VALUES (%s, %s, %s, 'NGN', %s, %s, %s)
            """, (supplier_id, type, amount, reference_type, reference_id, self._json(meta)))

    @staticmethod
    def _items_for(cursor, po_ids: List[str]) -> Dict[str, List[PurchaseOrderItem]]:
        if not po_ids:
            return {}
        cursor.execute("""
            SELECT
                poi.id, poi.purchase_order_id, poi.order_item_id,
                poi.external_ref, poi.external_status,
                oi.title, oi.quantity, oi.unit_price,
                oi.chosen_supplier_unit_price AS supplier_unit_price
            FROM purchase_order_items poi
            JOIN order_items oi ON oi.id = poi.order_item_id
            WHERE poi.purchase_order_id = ANY(%s)
            ORDER BY oi.created_at, poi.id
        """, (list(po_ids),))
        grouped: Dict[str, List[PurchaseOrderItem]] = {}
        for row in cursor.fetchall():
            grouped.setdefault(row['purchase_order_id'], []).append(PurchaseOrderItem(**row))
        return grouped
