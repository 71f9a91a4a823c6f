"""Database models for the Household Insights engine"""

from household_insights.models.household import (
    Member,
    RecordType,
    Record
)

from household_insights.models.analytics_cache import AnalyticsCache

__all__ = [
    "Member",
    "RecordType",
    "Record",
    "AnalyticsCache",
]
