"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders, their items and activity log,
and returns Order domain models.

Date: 2026-02-14
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from marketplace.domain.order import Order, OrderItem, SPENT_STATUSES
from marketplace.repositories.base import BaseRepository

ORDER_COLUMNS = """
    o.id, o.user_id, u.email AS user_email, o.status,
    o.subtotal, o.tax, o.service_fee_base, o.service_fee_comms,
    o.service_fee_gateway, o.service_fee_total, o.total,
    o.shipping_address, o.shipping_address_id, o.notes,
    o.paid_at, o.created_at, o.updated_at
"""
ITEM_COLUMNS = """
    id, order_id, product_id, variant_id, title, unit_price, quantity,
    line_total, status, selected_options, chosen_supplier_offer_id,
    chosen_supplier_id, chosen_supplier_unit_price, created_at
"""


class OrderRepository(BaseRepository):
    """
    Repository for Order data access

    Writes that belong to order placement take the transaction's connection.
    """

    @staticmethod
    def _map_row_to_order(row: dict) -> Order:
        return Order(**row)

    def create(
        self,
        conn,
        user_id: str,
        shipping_address: Optional[dict],
        shipping_address_id: Optional[str],
        notes: Optional[str]
    ) -> Order:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                INSERT INTO orders (user_id, status, shipping_address, shipping_address_id, notes)
                VALUES (%s, 'CREATED', %s, %s, %s)
                RETURNING id
            """, (user_id, self._json(shipping_address), shipping_address_id, notes))
            order_id = cursor.fetchone()['id']
        return self.find_by_id(order_id, conn=conn)

    def add_item(
        self,
        conn,
        order_id: str,
        product_id: str,
        variant_id: Optional[str],
        title: str,
        unit_price: Decimal,
        quantity: int,
        line_total: Decimal,
        selected_options: Any = None,
        offer_id: Optional[str] = None,
        supplier_id: Optional[str] = None,
        supplier_unit_price: Optional[Decimal] = None
    ) -> OrderItem:
        """Insert one order item (one supplier allocation of a line)"""
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                INSERT INTO order_items (
                    order_id, product_id, variant_id, title, unit_price, quantity,
                    line_total, status, selected_options, chosen_supplier_offer_id,
                    chosen_supplier_id, chosen_supplier_unit_price
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, 'PENDING', %s, %s, %s, %s)
                RETURNING {ITEM_COLUMNS}
            """, (
                order_id, product_id, variant_id, title, unit_price, quantity,
                line_total, self._json(selected_options), offer_id,
                supplier_id, supplier_unit_price
            ))
            return OrderItem(**cursor.fetchone())

    def update_totals(self, conn, order_id: str, totals: Dict[str, Decimal]) -> None:
        """Store subtotal, tax, service fee parts and total"""
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE orders
                SET subtotal = %s, tax = %s, service_fee_base = %s, service_fee_comms = %s,
                    service_fee_gateway = %s, service_fee_total = %s, total = %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (
                totals['subtotal'], totals['tax'], totals['service_fee_base'],
                totals['service_fee_comms'], totals['service_fee_gateway'],
                totals['service_fee_total'], totals['total'], order_id
            ))

    def update_status(self, order_id: str, status: str, mark_paid: bool = False, conn=None) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE orders
                SET status = %s,
                    paid_at = CASE WHEN %s THEN COALESCE(paid_at, NOW()) ELSE paid_at END,
                    updated_at = NOW()
                WHERE id = %s
            """, (status, mark_paid, order_id))

    def log_activity(
        self,
        order_id: str,
        type: str,
        message: Optional[str] = None,
        meta: Optional[dict] = None,
        conn=None
    ) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                INSERT INTO order_activities (order_id, type, message, meta)
                VALUES (%s, %s, %s, %s)
            """, (order_id, type, message, self._json(meta)))

    def find_by_id(self, order_id: str, with_items: bool = True, conn=None) -> Optional[Order]:
        """
        Find order by ID

        Returns:
            Order with items, or None if not found
        """
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON u.id = o.user_id
                WHERE o.id = %s
            """, (order_id,))
            row = cursor.fetchone()
            if not row:
                return None

            order = self._map_row_to_order(row)
            if with_items:
                order.items = self._items_for(cursor, [order_id]).get(order_id, [])
            return order

    def find_for_user(self, user_id: str) -> List[Order]:
        """All of a shopper's orders, newest first, with items"""
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON u.id = o.user_id
                WHERE o.user_id = %s
                ORDER BY o.created_at DESC
            """, (user_id,))
            orders = [self._map_row_to_order(row) for row in cursor.fetchall()]

            items = self._items_for(cursor, [order.id for order in orders])
            for order in orders:
                order.items = items.get(order.id, [])
            return orders

    def find_all(self, limit: int = 50, search: Optional[str] = None) -> List[Order]:
        """
        Admin listing, newest first

        Args:
            limit: Maximum results (1..100)
            search: Matches order id prefix or customer email
        """
        conditions = []
        params: list = []
        if search:
            conditions.append("(o.id ILIKE %s OR u.email ILIKE %s)")
            params.extend([f"{search}%", f"%{search}%"])
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON u.id = o.user_id
                {where_clause}
                ORDER BY o.created_at DESC
                LIMIT %s
            """, params + [limit])
            return [self._map_row_to_order(row) for row in cursor.fetchall()]

    def summary_for_user(self, user_id: str) -> dict:
        """Order count, total spent on paid orders and the 5 latest orders"""
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT
                    COUNT(*) AS orders_count,
                    COALESCE(SUM(total) FILTER (WHERE status = ANY(%s)), 0) AS total_spent
                FROM orders
                WHERE user_id = %s
            """, (list(SPENT_STATUSES), user_id))
            totals = cursor.fetchone()

            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN users u ON u.id = o.user_id
                WHERE o.user_id = %s
                ORDER BY o.created_at DESC
                LIMIT 5
            """, (user_id,))
            recent = [self._map_row_to_order(row) for row in cursor.fetchall()]

        return {
            'orders_count': totals['orders_count'],
            'total_spent': totals['total_spent'],
            'recent': recent,
        }

    @staticmethod
    def _items_for(cursor, order_ids: List[str]) -> Dict[str, List[OrderItem]]:
        if not order_ids:
            return {}
        cursor.execute(f"""
            SELECT {ITEM_COLUMNS}
            FROM order_items
            WHERE order_id = ANY(%s)
            ORDER BY created_at, id
        """, (list(order_ids),))
        grouped: Dict[str, List[OrderItem]] = {}
        for row in cursor.fetchall():
            grouped.setdefault(row['order_id'], []).append(OrderItem(**row))
        return grouped
