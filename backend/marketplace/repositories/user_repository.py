"""
User Repository - accounts and login sessions
"""
from datetime import datetime
from typing import List, Optional, Tuple

from marketplace.domain.account import Role, User, UserSession
from marketplace.repositories.base import BaseRepository

USER_COLUMNS = """
    id, email, role, first_name, last_name, phone,
    email_verified_at, phone_verified_at, created_at
"""
SESSION_COLUMNS = """
    id, user_id, ip, user_agent, device_name,
    created_at, last_seen_at, revoked_at, revoked_reason
"""


class UserRepository(BaseRepository):
    """Repository for users"""

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return User(**row) if row else None

    def find_with_password(self, email: str) -> Optional[Tuple[User, str]]:
        """
        Find a user by email (case-insensitive) for login

        Returns:
            (User, password_hash) or None
        """
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE LOWER(email) = LOWER(%s)
            """, (email,))
            row = cursor.fetchone()
            if not row:
                return None
            password_hash = row.pop('password_hash')
            return User(**row), password_hash

    def email_exists(self, email: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM users WHERE LOWER(email) = LOWER(%s)", (email,))
            return cursor.fetchone() is not None

    def create(
        self,
        email: str,
        password_hash: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None
    ) -> User:
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO users (email, password_hash, role, first_name, last_name, phone)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {USER_COLUMNS}
            """, (email.lower(), password_hash, role, first_name, last_name, phone))
            return User(**cursor.fetchone())

    def admin_ids(self, conn=None) -> List[str]:
        """IDs of every ADMIN and SUPER_ADMIN user"""
        with self._cursor(conn) as cursor:
            cursor.execute("SELECT id FROM users WHERE role = ANY(%s)", (list(Role.ADMINS),))
            return [row['id'] for row in cursor.fetchall()]


class SessionRepository(BaseRepository):
    """Repository for login sessions (one row per signed-in device)"""

    def create(self, user_id: str, ip: Optional[str], user_agent: Optional[str]) -> UserSession:
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO user_sessions (user_id, ip, user_agent)
                VALUES (%s, %s, %s)
                RETURNING {SESSION_COLUMNS}
            """, (user_id, ip, user_agent))
            return UserSession(**cursor.fetchone())

    def find_by_id(self, session_id: str) -> Optional[UserSession]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {SESSION_COLUMNS} FROM user_sessions WHERE id = %s", (session_id,))
            row = cursor.fetchone()
            return UserSession(**row) if row else None

    def find_for_user(self, user_id: str) -> List[UserSession]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {SESSION_COLUMNS}
                FROM user_sessions
                WHERE user_id = %s
                ORDER BY last_seen_at DESC
            """, (user_id,))
            return [UserSession(**row) for row in cursor.fetchall()]

    def touch(self, session_id: str, when: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE user_sessions SET last_seen_at = %s WHERE id = %s",
                (when, session_id)
            )

    def revoke(self, session_id: str, user_id: str, reason: str) -> bool:
        """Revoke one of the user's sessions; False when it is not theirs"""
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE user_sessions
                SET revoked_at = COALESCE(revoked_at, NOW()), revoked_reason = COALESCE(revoked_reason, %s)
                WHERE id = %s AND user_id = %s
            """, (reason, session_id, user_id))
            return cursor.rowcount > 0

    def revoke_others(self, user_id: str, keep_session_id: str, reason: str) -> int:
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE user_sessions
                SET revoked_at = NOW(), revoked_reason = %s
                WHERE user_id = %s AND id <> %s AND revoked_at IS NULL
            """, (reason, user_id, keep_session_id))
            return cursor.rowcount

    def rename(self, session_id: str, user_id: str, device_name: Optional[str]) -> Optional[UserSession]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE user_sessions
                SET device_name = %s
                WHERE id = %s AND user_id = %s
                RETURNING {SESSION_COLUMNS}
            """, (device_name, session_id, user_id))
            row = cursor.fetchone()
            return UserSession(**row) if row else None
