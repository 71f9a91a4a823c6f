"""
Durable cache tier backed by the analytics_cache table
"""
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from household_insights.models.analytics_cache import AnalyticsCache
from household_insights.models.base import SessionLocal
from household_insights.utils.helpers import to_timestamp, to_utc_datetime


@dataclass
class CacheEntry:
    key: str
    payload: Any
    expires_at: float  # epoch seconds
    scope: Optional[str] = None


class SQLCacheStore:
    """
    Keyed JSON payload store

    Errors are not handled here; TieredCache decides what a failed read or
    write means.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[CacheEntry]:
        """Latest-expiring row for the key, expired or not"""
        db = self.session_factory()
        try:
            row = (
                db.query(AnalyticsCache)
                .filter(AnalyticsCache.cache_key == key)
                .order_by(AnalyticsCache.expires_at.desc(), AnalyticsCache.id.desc())
                .first()
            )
            if row is None:
                return None
            return CacheEntry(
                key=row.cache_key,
                payload=json.loads(row.data),
                expires_at=to_timestamp(row.expires_at),
                scope=row.household_id,
            )
        finally:
            db.close()

    def put(self, key: str, payload: Any, expires_at: float, scope: str) -> None:
        db = self.session_factory()
        try:
            db.query(AnalyticsCache).filter(AnalyticsCache.cache_key == key).delete(
                synchronize_session=False
            )
            db.add(AnalyticsCache(
                household_id=scope,
                cache_key=key,
                data=json.dumps(payload, default=str),
                expires_at=to_utc_datetime(expires_at),
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, key: str) -> int:
        return self._delete(AnalyticsCache.cache_key == key)

    def delete_where(self, scope: str) -> int:
        return self._delete(AnalyticsCache.household_id == scope)

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.utcnow()
        return self._delete(AnalyticsCache.expires_at < now)

    def _delete(self, criterion) -> int:
        db = self.session_factory()
        try:
            deleted = db.query(AnalyticsCache).filter(criterion).delete(synchronize_session=False)
            db.commit()
            return deleted
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
