"""
Payment Repository - payment attempts and payment events
"""
from decimal import Decimal
from typing import List, Optional

from marketplace.domain.payment import Payment
from marketplace.repositories.base import BaseRepository

PAYMENT_COLUMNS = """
    p.id, p.order_id, p.reference, p.amount, p.fee_amount, p.status,
    p.provider, p.channel, p.init_payload, p.provider_payload,
    p.paid_at, p.created_at, p.updated_at
"""


class PaymentRepository(BaseRepository):

    def create(
        self,
        order_id: str,
        reference: str,
        amount: Decimal,
        channel: str,
        provider: Optional[str] = None,
        conn=None
    ) -> Payment:
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                INSERT INTO payments AS p (order_id, reference, amount, status, channel, provider)
                VALUES (%s, %s, %s, 'PENDING', %s, %s)
                RETURNING {PAYMENT_COLUMNS}
            """, (order_id, reference, amount, channel, provider))
            return Payment(**cursor.fetchone())

    def reference_exists(self, reference: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM payments WHERE reference = %s", (reference,))
            return cursor.fetchone() is not None

    def find_by_reference(self, reference: str, for_update: bool = False, conn=None) -> Optional[Payment]:
        lock = "FOR UPDATE" if for_update else ""
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments p
                WHERE p.reference = %s
                {lock}
            """, (reference,))
            row = cursor.fetchone()
            return Payment(**row) if row else None

    def find_pending_for_order(self, order_id: str) -> List[Payment]:
        """Pending attempts for an order, newest first"""
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments p
                WHERE p.order_id = %s AND p.status = 'PENDING'
                ORDER BY p.created_at DESC
            """, (order_id,))
            return [Payment(**row) for row in cursor.fetchall()]

    def find_for_user(self, user_id: str) -> List[Payment]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments p
                JOIN orders o ON o.id = p.order_id
                WHERE o.user_id = %s
                ORDER BY p.created_at DESC
            """, (user_id,))
            return [Payment(**row) for row in cursor.fetchall()]

    def total_paid_for_user(self, user_id: str) -> Decimal:
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT COALESCE(SUM(p.amount), 0) AS total_paid
                FROM payments p
                JOIN orders o ON o.id = p.order_id
                WHERE o.user_id = %s AND p.status = 'PAID'
            """, (user_id,))
            return cursor.fetchone()['total_paid']

    def paid_for_order(self, order_id: str, conn=None) -> Optional[Payment]:
        """The most recent PAID attempt of an order"""
        with self._cursor(conn) as cursor:
            cursor.execute(f"""
                SELECT {PAYMENT_COLUMNS}
                FROM payments p
                WHERE p.order_id = %s AND p.status = 'PAID'
                ORDER BY p.paid_at DESC NULLS LAST
                LIMIT 1
            """, (order_id,))
            row = cursor.fetchone()
            return Payment(**row) if row else None

    def save_init_payload(self, payment_id: str, provider: str, payload: dict) -> None:
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE payments
                SET init_payload = %s, provider = %s, updated_at = NOW()
                WHERE id = %s
            """, (self._json(payload), provider, payment_id))

    def update_status(
        self,
        payment_id: str,
        status: str,
        provider_payload: Optional[dict] = None,
        conn=None
    ) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE payments
                SET status = %s,
                    provider_payload = COALESCE(%s, provider_payload),
                    updated_at = NOW()
                WHERE id = %s
            """, (status, self._json(provider_payload), payment_id))

    def mark_paid(
        self,
        payment_id: str,
        amount: Decimal,
        fee_amount: Optional[Decimal],
        provider_payload: Optional[dict] = None,
        conn=None
    ) -> bool:
        """
        Flip a payment to PAID

        Returns:
            False when it was already PAID (nothing changed)
        """
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE payments
                SET status = 'PAID', amount = %s, fee_amount = %s,
                    provider_payload = COALESCE(%s, provider_payload),
                    paid_at = NOW(), updated_at = NOW()
                WHERE id = %s AND status <> 'PAID'
            """, (amount, fee_amount, self._json(provider_payload), payment_id))
            return cursor.rowcount > 0

    def cancel_pending(self, order_id: str, keep_payment_id: Optional[str] = None, conn=None) -> int:
        """Cancel the order's pending attempts except keep_payment_id"""
        with self._cursor(conn) as cursor:
            cursor.execute("""
                UPDATE payments
                SET status = 'CANCELED', updated_at = NOW()
                WHERE order_id = %s AND status = 'PENDING'
                  AND (%s::text IS NULL OR id <> %s)
            """, (order_id, keep_payment_id, keep_payment_id))
            return cursor.rowcount

    def log_event(self, payment_id: str, type: str, data: Optional[dict] = None, conn=None) -> None:
        with self._cursor(conn) as cursor:
            cursor.execute("""
                INSERT INTO payment_events (payment_id, type, data)
                VALUES (%s, %s, %s)
            """, (payment_id, type, self._json(data)))

    def order_has_event(self, order_id: str, type: str, conn=None) -> bool:
        """True when any payment of the order has logged an event of this type"""
        with self._cursor(conn) as cursor:
            cursor.execute("""
                SELECT 1
                FROM payment_events e
                JOIN payments p ON p.id = e.payment_id
                WHERE p.order_id = %s AND e.type = %s
                LIMIT 1
            """, (order_id, type))
            return cursor.fetchone() is not None
