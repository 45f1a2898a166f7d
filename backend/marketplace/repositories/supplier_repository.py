"""
Supplier Repository
"""
from typing import Dict, List, Optional

from marketplace.repositories.base import BaseRepository


class SupplierRepository(BaseRepository):
    """Lookups linking suppliers to their users and Paystack subaccounts"""

    def find_id_for_user(self, user_id: str) -> Optional[str]:
        """Supplier owned by a SUPPLIER user, if any"""
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM suppliers WHERE user_id = %s LIMIT 1", (user_id,))
            row = cursor.fetchone()
            return row['id'] if row else None

    def exists(self, supplier_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM suppliers WHERE id = %s", (supplier_id,))
            return cursor.fetchone() is not None

    def user_ids(self, supplier_ids: List[str], conn=None) -> Dict[str, str]:
        """Map supplier id -> owning user id, for suppliers that have one"""
        if not supplier_ids:
            return {}
        with self._cursor(conn) as cursor:
            cursor.execute("""
                SELECT id, user_id FROM suppliers
                WHERE id = ANY(%s) AND user_id IS NOT NULL
            """, (list(supplier_ids),))
            return {row['id']: row['user_id'] for row in cursor.fetchall()}

    def subaccount_codes(self, supplier_ids: List[str]) -> Dict[str, str]:
        """Map supplier id -> Paystack subaccount code, for suppliers that have one"""
        if not supplier_ids:
            return {}
        with self._cursor() as cursor:
            cursor.execute("""
                SELECT id, paystack_subaccount_code FROM suppliers
                WHERE id = ANY(%s) AND COALESCE(paystack_subaccount_code, '') <> ''
            """, (list(supplier_ids),))
            return {row['id']: row['paystack_subaccount_code'] for row in cursor.fetchall()}
