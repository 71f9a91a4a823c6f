"""
Durable tier of the insight / suggestion cache
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime

from household_insights.models.base import Base


class AnalyticsCache(Base):
    """Cached JSON payload keyed by cache_key and scoped to a household.

    Rows are written delete-then-insert, so at most one row per key is
    intended; readers must still tolerate duplicates.
    """
    __tablename__ = "analytics_cache"

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(String, index=True, nullable=False)
    cache_key = Column(String, index=True, nullable=False)
    data = Column(Text, nullable=False)
    expires_at = Column(DateTime, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
