"""
Setting Repository - key/value platform settings
"""
from typing import Dict, List, Optional

from marketplace.domain.setting import Setting
from marketplace.repositories.base import BaseRepository

SETTING_COLUMNS = "id, key, value, is_public, meta, created_at, updated_at"


class SettingRepository(BaseRepository):

    def find_all(self) -> List[Setting]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {SETTING_COLUMNS} FROM settings ORDER BY key ASC")
            return [Setting(**row) for row in cursor.fetchall()]

    def find_by_id(self, setting_id: str) -> Optional[Setting]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {SETTING_COLUMNS} FROM settings WHERE id = %s", (setting_id,))
            row = cursor.fetchone()
            return Setting(**row) if row else None

    def find_by_key(self, key: str) -> Optional[Setting]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {SETTING_COLUMNS} FROM settings WHERE key = %s", (key,))
            row = cursor.fetchone()
            return Setting(**row) if row else None

    def find_values(self, keys: List[str]) -> Dict[str, str]:
        """Map key -> raw value for whichever of the keys exist"""
        if not keys:
            return {}
        with self._cursor() as cursor:
            cursor.execute("SELECT key, value FROM settings WHERE key = ANY(%s)", (list(keys),))
            return {row['key']: row['value'] for row in cursor.fetchall()}

    def create(self, key: str, value: Optional[str], is_public: bool = False, meta: Optional[dict] = None) -> Setting:
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO settings (key, value, is_public, meta)
                VALUES (%s, %s, %s, %s)
                RETURNING {SETTING_COLUMNS}
            """, (key, value if value is not None else "", is_public, self._json(meta)))
            return Setting(**cursor.fetchone())

    def upsert(self, key: str, value: Optional[str]) -> Setting:
        """Create or overwrite a setting by key; None is stored as an empty string"""
        with self._cursor() as cursor:
            cursor.execute(f"""
                INSERT INTO settings (key, value)
                VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                RETURNING {SETTING_COLUMNS}
            """, (key, value if value is not None else ""))
            return Setting(**cursor.fetchone())

    def update(self, setting_id: str, fields: dict) -> Optional[Setting]:
        """
        Update any of key, value, is_public, meta

        Returns:
            Updated Setting or None if not found
        """
        columns = []
        params = []
        for column in ("key", "value", "is_public", "meta"):
            if column in fields:
                columns.append(f"{column} = %s")
                value = fields[column]
                params.append(self._json(value) if column == "meta" else value)

        with self._cursor() as cursor:
            cursor.execute(f"""
                UPDATE settings
                SET {", ".join(columns)}, updated_at = NOW()
                WHERE id = %s
                RETURNING {SETTING_COLUMNS}
            """, params + [setting_id])
            row = cursor.fetchone()
            return Setting(**row) if row else None

    def delete(self, setting_id: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM settings WHERE id = %s", (setting_id,))
            return cursor.rowcount > 0
