"""
Refund Repository - refund requests, their items and events
"""
from decimal import Decimal
from typing import Dict, List, Optional

from marketplace.domain.refund import Refund, RefundItem
from marketplace.repositories.base import BaseRepository

REFUND_COLUMNS = """
    id, order_id, purchase_order_id, supplier_id, status, requested_by_user_id,
    reason, fault_party, items_amount, tax_amount, service_fee_base_amount,
    service_fee_comms_amount, service_fee_gateway_amount, total_amount, meta,
    created_at, updated_at
"""


class RefundRepository(BaseRepository):

    def exists_for_purchase_order(self, purchase_order_id: str, conn=None) -> bool:
        with self._cursor(conn) as cursor:
            cursor.execute("SELECT 1 FROM refunds WHERE purchase_order_id = %s", (purchase_order_id,))
            return cursor.fetchone() is not None

    def create(
        self,
        conn,
        order_id: str,
        purchase_order_id: str,
        supplier_id: Optional[str],
        requested_by_user_id: str,
        reason: str,
        fault_party: Optional[str],
        items_amount: Decimal,
        total_amount: Decimal,
        status: str,
        meta: Optional[dict],
        items: List[RefundItem]
    ) -> Refund:
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                INSERT INTO refunds (
                    order_id, purchase_order_id, supplier_id, status, requested_by_user_id,
                    reason, fault_party, items_amount, tax_amount, service_fee_base_amount,
                    service_fee_comms_amount, service_fee_gateway_amount, total_amount, meta
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 0, 0, 0, 0, %s, %s)
                RETURNING {REFUND_COLUMNS}
            """, (
                order_id, purchase_order_id, supplier_id, status, requested_by_user_id,
                reason, fault_party, items_amount, total_amount, self._json(meta)
            ))
            refund = Refund(**cursor.fetchone())

            for item in items:
                cursor.execute("""
                    INSERT INTO refund_items (refund_id, order_item_id, qty)
                    VALUES (%s, %s, %s)
                """, (refund.id, item.order_item_id, item.qty))

            refund.items = self._items_for(cursor, [refund.id]).get(refund.id, [])
            return refund

    def find_by_id(self, refund_id: str, for_update: bool = False, conn=None) -> Optional[Refund]:
        lock = "FOR UPDATE" if for_update else ""
        with self._cursor(conn) as cursor:
            cursor.execute(f"SELECT {REFUND_COLUMNS} FROM refunds WHERE id = %s {lock}", (refund_id,))
            row = cursor.fetchone()
            if not row:
                return None
            refund = Refund(**row)
            refund.items = self._items_for(cursor, [refund.id]).get(refund.id, [])
            return refund

    def find_for_user(self, user_id: str) -> List[Refund]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {REFUND_COLUMNS} FROM refunds
                WHERE requested_by_user_id = %s
                ORDER BY created_at DESC
            """, (user_id,))
            refunds = [Refund(**row) for row in cursor.fetchall()]
            items = self._items_for(cursor, [refund.id for refund in refunds])
            for refund in refunds:
                refund.items = items.get(refund.id, [])
            return refunds

    def update_status(self, refund_id: str, status: str, conn=None) -> Optional[Refund]:
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                UPDATE refunds SET status = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING {REFUND_COLUMNS}
            """, (status, refund_id))
            row = cursor.fetchone()
            return Refund(**row) if row else None

    def log_event(
        self,
        refund_id: str,
        type: str,
        message: Optional[str] = None,
        meta: Optional[dict] = None,
        conn=None
    ) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                INSERT INTO refund_events (refund_id, type, message, meta)
                VALUES (%s, %s, %s, %s)
            """, (refund_id, type, message, self._json(meta)))

    @staticmethod
    def _items_for(cursor, refund_ids: List[str]) -> Dict[str, List[RefundItem]]:
        if not refund_ids:
            return {}
        cursor.execute("""
            SELECT id, refund_id, order_item_id, qty
            FROM refund_items
            WHERE refund_id = ANY(%s)
        """, (list(refund_ids),))
        grouped: Dict[str, List[RefundItem]] = {}
        for row in cursor.fetchall():
            grouped.setdefault(row['refund_id'], []).append(RefundItem(**row))
        return grouped
