"""
Repository base class

Read methods open their own connection. Write methods that take part in a
larger unit of work accept the caller's connection instead, and leave
commit/rollback to whoever opened it (see core.database.transaction).
"""
from contextlib import contextmanager
from typing import Any, Optional

from psycopg2.extras import Json

from marketplace.core.database import get_db_connection_dict


class BaseRepository:

    @contextmanager
    def _cursor(self, conn=None):
        """
        Yield a RealDictCursor.

        When no connection is passed one is opened, committed on success,
        rolled back on error and closed.
        """
        owned = conn is None
        if owned:
            conn = get_db_connection_dict()
        cursor = conn.cursor()
        try:
            yield cursor
            if owned:
                conn.commit()
        except Exception:
            if owned:
                conn.rollback()
            raise
        finally:
            cursor.close()
            if owned:
                conn.close()

    @staticmethod
    def _json(value: Optional[Any]) -> Optional[Json]:
        """Adapt a dict/list for a JSONB column"""
        return Json(value) if value is not None else None
