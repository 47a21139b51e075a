from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional
import logging

from supabase import create_client, Client

from quiz_engine.config import settings
from quiz_engine.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

# Supabase Client Setup
@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get Supabase client for token verification"""
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key.get_secret_value()
    )

@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """Get Supabase service-role client for record operations"""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key.get_secret_value()
    )


def _apply_filters(query, filters: Optional[Dict[str, Any]] = None,
                   in_filters: Optional[Dict[str, Iterable[Any]]] = None):
    for key, value in (filters or {}).items():
        if value is None:
            query = query.is_(key, "null")
        else:
            query = query.eq(key, value)
    for key, values in (in_filters or {}).items():
        query = query.in_(key, list(values))
    return query


# Database operations using Supabase REST API
class Database:
    """Record CRUD and filtered queries against the hosted store.

    Every failure is logged and re-raised as ``StoreUnavailableError``.
    Writes are single statements, so a failed write leaves no partial row.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    def insert(self, table: str, data: dict) -> Optional[dict]:
        """Insert a row and return it"""
        try:
            result = self.client.table(table).insert(data).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Insert error in {table}: {e}")
            raise StoreUnavailableError("insert", table, str(e)) from e

    def select(self, table: str, columns: str = "*", filters: Optional[dict] = None,
               in_filters: Optional[dict] = None, order_by: Optional[str] = None,
               descending: bool = False, limit: Optional[int] = None) -> List[dict]:
        """Select rows matching equality (and optional membership) filters"""
        try:
            query = _apply_filters(self.client.table(table).select(columns), filters, in_filters)

            if order_by:
                query = query.order(order_by, desc=descending)

            if limit:
                query = query.limit(limit)

            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Select error in {table}: {e}")
            raise StoreUnavailableError("select", table, str(e)) from e

    def update(self, table: str, data: dict, filters: dict) -> Optional[dict]:
        """Update rows matching filters; returns the first updated row or None"""
        try:
            query = _apply_filters(self.client.table(table).update(data), filters)
            result = query.execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Update error in {table}: {e}")
            raise StoreUnavailableError("update", table, str(e)) from e

    def upsert(self, table: str, data: dict, on_conflict: str) -> Optional[dict]:
        """Insert or replace the row identified by the ``on_conflict`` columns"""
        try:
            result = self.client.table(table).upsert(data, on_conflict=on_conflict).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            logger.error(f"Upsert error in {table}: {e}")
            raise StoreUnavailableError("upsert", table, str(e)) from e

    def delete(self, table: str, filters: dict) -> List[dict]:
        """Delete rows matching filters"""
        try:
            query = _apply_filters(self.client.table(table).delete(), filters)
            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Delete error in {table}: {e}")
            raise StoreUnavailableError("delete", table, str(e)) from e


def test_supabase_connection(database: Optional[Database] = None) -> bool:
    """Check the store with a one-row read"""
    database = database or db
    try:
        database.select("quizzes", "id", limit=1)
        return True
    except StoreUnavailableError as e:
        logger.error(f"Supabase connection test failed: {e}")
        return False


# Global database instance
db = Database()
