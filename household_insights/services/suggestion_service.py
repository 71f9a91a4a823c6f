"""
Suggestion Service
Auto-completion lookups for record entry: previous field values, titles,
tags and smart defaults, mined from a household's recent records and
memoized in the tiered cache.

Lookups are non-critical: any failure is logged and an empty result returned.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from household_insights.config import get_settings
from household_insights.services.record_store import RawRecord, RecordStore
from household_insights.utils.cache import TieredCache, field_cache_key, general_cache_key
from household_insights.utils.helpers import parse_datetime, parse_json_object, time_of_day
from household_insights.utils.logger import log

settings = get_settings()

FIELD_SCAN_LIMIT = 75
TITLE_SCAN_LIMIT = 40
TAG_SCAN_LIMIT = 60
SMART_DEFAULTS_SCAN_LIMIT = 15

RECENT_WINDOW = timedelta(days=7)
SMART_DEFAULTS_WINDOW = timedelta(days=30)

MAX_RECENT = 5
MAX_FREQUENT = 5
MAX_CONTEXTUAL = 3
MAX_TITLES = 8
MAX_TAGS = 12
MAX_DEFAULT_TAGS = 3


@dataclass
class Suggestion:
    value: str
    last_used: datetime
    frequency: int = 1
    context: Dict[str, Any] = field(default_factory=dict)

    def merge(self, other: "Suggestion") -> None:
        self.frequency += 1
        if other.last_used > self.last_used:
            self.last_used = other.last_used
            self.context = other.context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "frequency": self.frequency,
            "lastUsed": self.last_used.isoformat(),
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Suggestion":
        return cls(
            value=data["value"],
            last_used=parse_datetime(data["lastUsed"]),
            frequency=data.get("frequency", 1),
            context=data.get("context") or {},
        )


def _by_frequency_then_recency(suggestion: Suggestion):
    return (suggestion.frequency, suggestion.last_used)


def _split_tags(raw_tags: Optional[str]) -> List[str]:
    if not raw_tags:
        return []
    return [tag.strip().lower() for tag in raw_tags.split(",") if tag.strip()]


def _read_field_value(content: Dict[str, Any], field_id: str) -> Any:
    """Dynamic-form values live under fields.field_<id>; plain records use the id as key"""
    nested = content.get("fields")
    if isinstance(nested, dict) and f"field_{field_id}" in nested:
        return nested[f"field_{field_id}"]
    return content.get(field_id)


def empty_field_suggestions() -> Dict[str, List[Dict[str, Any]]]:
    return {"recent": [], "frequent": [], "contextual": []}


class SuggestionService:
    """
    Auto-completion suggestions for one household's records

    Args:
        record_store: Source of records
        cache: Tiered cache; entries are scoped to the household
        clock: Returns the current naive UTC datetime
    """

    def __init__(
        self,
        record_store: RecordStore,
        cache: TieredCache,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.record_store = record_store
        self.cache = cache
        self.clock = clock

    # ==================== FIELD VALUES ====================

    def get_field_suggestions(
        self,
        field_id: str,
        record_type_id: int,
        household_id: str,
        member_id: Optional[int] = None,
        partial_value: Optional[str] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Previous values for one field, grouped as recent, frequent and contextual

        The cache holds every merged value seen for the field; the partial
        input is excluded and the groups ranked on each lookup.
        """
        cache_key = field_cache_key(field_id, record_type_id, household_id, member_id, partial_value)
        cached = self.cache.get(cache_key)

        try:
            if cached is None:
                records = self.record_store.fetch_records(
                    household_id,
                    limit=FIELD_SCAN_LIMIT,
                    recent_first=True,
                    record_type_id=record_type_id
                )
                values = self._collect_field_values(records, field_id)
                self.cache.set(
                    cache_key,
                    [s.to_dict() for s in values],
                    ttl=settings.suggestion_cache_ttl_seconds,
                    scope=household_id
                )
            else:
                values = [Suggestion.from_dict(item) for item in cached]
        except Exception as e:
            log.error(f"Error fetching field suggestions: {str(e)}")
            return empty_field_suggestions()

        return self._rank_field_values(values, member_id, partial_value)

    def _collect_field_values(self, records: List[RawRecord], field_id: str) -> List[Suggestion]:
        """String values of one field, merged case-insensitively"""
        now = self.clock()
        seen: Dict[str, Suggestion] = {}

        for record in records:
            content = parse_json_object(record.content)
            if not content:
                continue

            value = _read_field_value(content, field_id)
            if not isinstance(value, str) or not value.strip():
                continue

            value = value.strip()
            used_at = parse_datetime(record.created_at) or now
            suggestion = Suggestion(
                value=value,
                last_used=used_at,
                context={
                    "memberId": record.member_id,
                    "memberName": record.member_name,
                    "recordTypeName": record.record_type_name,
                    "timeOfDay": time_of_day(used_at),
                },
            )

            existing = seen.get(value.lower())
            if existing:
                existing.merge(suggestion)
            else:
                seen[value.lower()] = suggestion

        return list(seen.values())

    def _rank_field_values(
        self,
        values: List[Suggestion],
        member_id: Optional[int],
        partial_value: Optional[str]
    ) -> Dict[str, List[Dict[str, Any]]]:
        now = self.clock()
        if partial_value:
            values = [s for s in values if s.value.lower() != partial_value.lower()]

        recent = sorted(
            (s for s in values if s.last_used >= now - RECENT_WINDOW),
            key=lambda s: s.last_used,
            reverse=True
        )[:MAX_RECENT]

        frequent = sorted(
            (s for s in values if s.frequency >= 2),
            key=_by_frequency_then_recency,
            reverse=True
        )[:MAX_FREQUENT]

        listed = {s.value.lower() for s in recent + frequent}
        current_time_of_day = time_of_day(now)
        contextual = sorted(
            (
                s for s in values
                if s.value.lower() not in listed
                and (
                    (member_id and s.context.get("memberId") == member_id)
                    or s.context.get("timeOfDay") == current_time_of_day
                )
            ),
            key=_by_frequency_then_recency,
            reverse=True
        )[:MAX_CONTEXTUAL]

        return {
            "recent": [s.to_dict() for s in recent],
            "frequent": [s.to_dict() for s in frequent],
            "contextual": [s.to_dict() for s in contextual],
        }

    # ==================== TITLES, TAGS, DEFAULTS ====================

    def get_title_suggestions(
        self,
        record_type_id: int,
        household_id: str,
        member_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        try:
            records = self.record_store.fetch_records(
                household_id,
                limit=TITLE_SCAN_LIMIT,
                recent_first=True,
                record_type_id=record_type_id
            )
        except Exception as e:
            log.error(f"Error fetching title suggestions: {str(e)}")
            return []

        now = self.clock()
        titles: Dict[str, Suggestion] = {}
        for record in records:
            if not record.title or not record.title.strip():
                continue

            title = record.title.strip()
            suggestion = Suggestion(
                value=title,
                last_used=parse_datetime(record.created_at) or now,
                context={"memberId": record.member_id, "memberName": record.member_name},
            )
            existing = titles.get(title.lower())
            if existing:
                existing.merge(suggestion)
            else:
                titles[title.lower()] = suggestion

        ranked = sorted(titles.values(), key=_by_frequency_then_recency, reverse=True)
        return [s.to_dict() for s in ranked[:MAX_TITLES]]

    def get_tag_suggestions(
        self,
        record_type_id: int,
        household_id: str,
        member_id: Optional[int] = None
    ) -> List[str]:
        try:
            records = self.record_store.fetch_records(
                household_id,
                limit=TAG_SCAN_LIMIT,
                recent_first=True,
                record_type_id=record_type_id
            )
        except Exception as e:
            log.error(f"Error fetching tag suggestions: {str(e)}")
            return []

        counts = Counter(tag for record in records for tag in _split_tags(record.tags))
        return [tag for tag, _ in counts.most_common(MAX_TAGS)]

    def get_smart_defaults(
        self,
        record_type_id: int,
        household_id: str,
        member_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Suggested entry time and tags from this month's records"""
        now = self.clock()
        try:
            records = self.record_store.fetch_records(
                household_id,
                limit=SMART_DEFAULTS_SCAN_LIMIT,
                recent_first=True,
                record_type_id=record_type_id,
                member_id=member_id,
                since=now - SMART_DEFAULTS_WINDOW
            )
        except Exception as e:
            log.error(f"Error generating smart defaults: {str(e)}")
            return {}

        hours = Counter()
        tags = Counter()
        for record in records:
            created_at = parse_datetime(record.created_at)
            if created_at is None:
                continue
            hours[created_at.hour] += 1
            tags.update(_split_tags(record.tags))

        suggested_hour = hours.most_common(1)[0][0] if hours else now.hour
        suggested_time = now.replace(hour=suggested_hour, minute=0, second=0, microsecond=0)

        return {
            "suggestedTime": suggested_time.isoformat()[:16],
            "suggestedTags": [tag for tag, _ in tags.most_common(MAX_DEFAULT_TAGS)],
            "commonPatterns": {
                "mostCommonHour": suggested_hour,
                "totalRecords": len(records),
            },
        }

    def get_general_suggestions(
        self,
        record_type_id: int,
        household_id: str,
        member_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Titles, tags and smart defaults in one cached bundle"""
        cache_key = general_cache_key(record_type_id, household_id, member_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        result = {
            "titleSuggestions": self.get_title_suggestions(record_type_id, household_id, member_id),
            "tagSuggestions": self.get_tag_suggestions(record_type_id, household_id, member_id),
            "smartDefaults": self.get_smart_defaults(record_type_id, household_id, member_id),
        }

        self.cache.set(cache_key, result, ttl=settings.suggestion_cache_ttl_seconds, scope=household_id)
        return result

    # ==================== HOUSEKEEPING ====================

    def invalidate(self, household_id: str) -> None:
        """Call after a household's records change"""
        self.cache.invalidate(household_id)

    def cleanup(self) -> int:
        return self.cache.cleanup_expired()
