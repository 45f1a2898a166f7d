"""
Notification Service - in-app notifications for shoppers, suppliers and admins
"""
import logging
from typing import Iterable, List, Optional

from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.repositories.supplier_repository import SupplierRepository
from marketplace.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 50


class NotificationService:

    def __init__(
        self,
        repo: Optional[NotificationRepository] = None,
        user_repo: Optional[UserRepository] = None,
        supplier_repo: Optional[SupplierRepository] = None
    ):
        self.repo = repo or NotificationRepository()
        self.user_repo = user_repo or UserRepository()
        self.supplier_repo = supplier_repo or SupplierRepository()

    def notify_user(self, user_id: str, type: str, title: str, body: str, data: Optional[dict] = None, conn=None) -> int:
        if not user_id:
            return 0
        return self.repo.create_many([user_id], type, title, body, data, conn=conn)

    def notify_many(
        self,
        user_ids: Iterable[str],
        type: str,
        title: str,
        body: str,
        data: Optional[dict] = None,
        conn=None
    ) -> int:
        """Notify each distinct user once"""
        unique = list(dict.fromkeys(u for u in user_ids if u))
        return self.repo.create_many(unique, type, title, body, data, conn=conn)

    def notify_admins(self, type: str, title: str, body: str, data: Optional[dict] = None, conn=None) -> int:
        return self.notify_many(self.user_repo.admin_ids(conn=conn), type, title, body, data, conn=conn)

    def notify_suppliers(
        self,
        supplier_ids: Iterable[str],
        type: str,
        title: str,
        body: str,
        data: Optional[dict] = None,
        conn=None
    ) -> int:
        """Notify the users that own the given suppliers"""
        owners = self.supplier_repo.user_ids(list(supplier_ids), conn=conn)
        if not owners:
            logger.info(f"No supplier users to notify for {type}")
        return self.notify_many(owners.values(), type, title, body, data, conn=conn)

    def list_for_user(self, user_id: str, limit: int = DEFAULT_LIMIT) -> dict:
        limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))
        items = self.repo.find_for_user(user_id, limit)
        return {
            "items": [item.to_dict() for item in items],
            "unreadCount": self.repo.count_unread(user_id),
            "nextCursor": None,
        }

    def mark_read(self, user_id: str, all: bool = False, ids: Optional[List[str]] = None) -> int:
        if all:
            return self.repo.mark_read(user_id)
        ids = [i for i in (ids or []) if i]
        if not ids:
            return 0
        return self.repo.mark_read(user_id, ids)
