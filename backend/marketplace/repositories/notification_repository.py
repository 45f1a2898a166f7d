"""
Notification Repository - in-app notifications
"""
from typing import List, Optional

from marketplace.domain.account import Notification
from marketplace.repositories.base import BaseRepository

NOTIFICATION_COLUMNS = "id, user_id, type, title, body, data, read_at, created_at"


class NotificationRepository(BaseRepository):

    def create_many(
        self,
        user_ids: List[str],
        type: str,
        title: str,
        body: str,
        data: Optional[dict] = None,
        conn=None
    ) -> int:
        """Insert the same notification for each user; returns rows written"""
        if not user_ids:
            return 0
        with self._cursor(conn) as cursor:
            for user_id in user_ids:
                cursor.execute("""
                    INSERT INTO notifications (user_id, type, title, body, data)
                    VALUES (%s, %s, %s, %s, %s)
                """, (user_id, type, title, body, self._json(data)))
        return len(user_ids)

    def find_for_user(self, user_id: str, limit: int = 20) -> List[Notification]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {NOTIFICATION_COLUMNS}
                FROM notifications
                WHERE user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """, (user_id, limit))
            return [Notification(**row) for row in cursor.fetchall()]

    def count_unread(self, user_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS unread FROM notifications WHERE user_id = %s AND read_at IS NULL",
                (user_id,)
            )
            return cursor.fetchone()['unread']

    def mark_read(self, user_id: str, ids: Optional[List[str]] = None) -> int:
        """Mark the given notifications (or all when ids is None) as read"""
        with self._cursor() as cursor:
            if ids is None:
                cursor.execute("""
                    UPDATE notifications SET read_at = NOW()
                    WHERE user_id = %s AND read_at IS NULL
                """, (user_id,))
            else:
                cursor.execute("""
                    UPDATE notifications SET read_at = NOW()
                    WHERE user_id = %s AND read_at IS NULL AND id = ANY(%s)
                """, (user_id, list(ids)))
            return cursor.rowcount
