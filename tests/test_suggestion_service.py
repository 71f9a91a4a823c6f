"""
Tests for auto-completion suggestions.
"""
from datetime import timedelta

from conftest import NOW, FailingRecordStore, InMemoryRecordStore, make_record
from household_insights.services.suggestion_service import SuggestionService
from household_insights.utils.cache import field_cache_key


def _mood(record_id, value, days_ago, member_id=1, **kwargs):
    return make_record(
        record_id, "Mood", {"fields": {"field_mood": value}},
        days_ago=days_ago, member_id=member_id, **kwargs
    )


def _service(cache, records):
    return SuggestionService(InMemoryRecordStore(records), cache, clock=lambda: NOW)


def _values(suggestions):
    return [s["value"] for s in suggestions]


# ────────────────────────────────────────────
# FIELD SUGGESTIONS
# ────────────────────────────────────────────


class TestFieldSuggestions:

    def test_recent_frequent_and_contextual(self, cache):
        records = [
            _mood(1, "Happy", days_ago=1),
            _mood(2, "happy", days_ago=3),
            _mood(3, "Tired", days_ago=2),
            _mood(4, "Calm", days_ago=20),
            _mood(5, "Calm", days_ago=25),
            _mood(6, "Grumpy", days_ago=30),
            _mood(7, "Excited", days_ago=40, member_id=2),
        ]
        result = _service(cache, records).get_field_suggestions("mood", 1, "house-a", member_id=1)

        assert _values(result["recent"]) == ["Happy", "Tired"]
        assert _values(result["frequent"]) == ["Happy", "Calm"]
        assert _values(result["contextual"]) == ["Grumpy", "Excited"]

    def test_values_merge_case_insensitively(self, cache):
        records = [_mood(1, "Happy", days_ago=1), _mood(2, "HAPPY", days_ago=2), _mood(3, "happy", days_ago=3)]
        result = _service(cache, records).get_field_suggestions("mood", 1, "house-a")

        assert len(result["recent"]) == 1
        assert result["recent"][0]["frequency"] == 3
        assert result["recent"][0]["value"] == "Happy"

    def test_context_describes_latest_use(self, cache):
        records = [_mood(1, "Happy", days_ago=1, member_name="Sam")]
        suggestion = _service(cache, records).get_field_suggestions("mood", 1, "house-a")["recent"][0]

        assert suggestion["context"] == {
            "memberId": 1,
            "memberName": "Sam",
            "recordTypeName": "Sleep Log",
            "timeOfDay": "morning",
        }
        assert suggestion["lastUsed"] == (NOW - timedelta(days=1)).isoformat()

    def test_partial_value_is_excluded(self, cache):
        records = [_mood(1, "Happy", days_ago=1), _mood(2, "Tired", days_ago=2)]
        result = _service(cache, records).get_field_suggestions("mood", 1, "house-a", partial_value="happy")
        assert _values(result["recent"]) == ["Tired"]

    def test_plain_content_keys_and_non_strings(self, cache):
        records = [
            make_record(1, "Mood", {"mood": "Relaxed"}, days_ago=1),
            make_record(2, "Mood", {"mood": 5}, days_ago=1),
            make_record(3, "Mood", "{not json", days_ago=1),
            make_record(4, "Mood", {"mood": "   "}, days_ago=1),
        ]
        result = _service(cache, records).get_field_suggestions("mood", 1, "house-a")
        assert _values(result["recent"]) == ["Relaxed"]

    def test_other_record_types_ignored(self, cache):
        records = [_mood(1, "Happy", days_ago=1, record_type_id=2)]
        result = _service(cache, records).get_field_suggestions("mood", 1, "house-a")
        assert result == {"recent": [], "frequent": [], "contextual": []}

    def test_results_are_cached(self, cache):
        store = InMemoryRecordStore([_mood(1, "Happy", days_ago=1)])
        service = SuggestionService(store, cache, clock=lambda: NOW)

        first = service.get_field_suggestions("mood", 1, "house-a")
        second = service.get_field_suggestions("mood", 1, "house-a")

        assert first == second
        assert store.fetch_calls == 1
        assert cache.get(field_cache_key("mood", 1, "house-a")) == first["recent"]

    def test_partials_sharing_a_cache_key_exclude_only_themselves(self, cache):
        store = InMemoryRecordStore([
            _mood(1, "cheerful-and-rested", days_ago=1),
            _mood(2, "cheerful-and-calm", days_ago=2),
        ])
        service = SuggestionService(store, cache, clock=lambda: NOW)

        rested = service.get_field_suggestions("mood", 1, "house-a", partial_value="cheerful-and-rested")
        calm = service.get_field_suggestions("mood", 1, "house-a", partial_value="cheerful-and-calm")

        assert _values(rested["recent"]) == ["cheerful-and-calm"]
        assert _values(calm["recent"]) == ["cheerful-and-rested"]
        assert store.fetch_calls == 1

    def test_cache_expires_after_five_minutes(self, cache, clock):
        store = InMemoryRecordStore([_mood(1, "Happy", days_ago=1)])
        service = SuggestionService(store, cache, clock=lambda: NOW)

        service.get_field_suggestions("mood", 1, "house-a")
        clock.advance(301)
        service.get_field_suggestions("mood", 1, "house-a")

        assert store.fetch_calls == 2

    def test_invalidate(self, cache):
        store = InMemoryRecordStore([_mood(1, "Happy", days_ago=1)])
        service = SuggestionService(store, cache, clock=lambda: NOW)

        service.get_field_suggestions("mood", 1, "house-a")
        service.invalidate("house-a")
        service.get_field_suggestions("mood", 1, "house-a")

        assert store.fetch_calls == 2

    def test_store_failure_returns_empty(self, cache):
        service = SuggestionService(FailingRecordStore(), cache, clock=lambda: NOW)
        assert service.get_field_suggestions("mood", 1, "house-a") == {
            "recent": [], "frequent": [], "contextual": []
        }


# ────────────────────────────────────────────
# TITLES, TAGS, DEFAULTS
# ────────────────────────────────────────────


class TestGeneralSuggestions:

    def test_titles_by_frequency_then_recency(self, cache):
        records = [
            make_record(1, "Sleep", {}, days_ago=1, title="Nap"),
            make_record(2, "Sleep", {}, days_ago=2, title="Bedtime"),
            make_record(3, "Sleep", {}, days_ago=3, title="bedtime "),
            make_record(4, "Sleep", {}, days_ago=4, title="Night wake"),
            make_record(5, "Sleep", {}, days_ago=5, title="  "),
        ]
        titles = _service(cache, records).get_title_suggestions(1, "house-a")

        assert _values(titles) == ["Bedtime", "Nap", "Night wake"]
        assert titles[0]["frequency"] == 2

    def test_titles_capped_at_eight(self, cache):
        records = [make_record(i, "Sleep", {}, days_ago=i, title=f"Title {i}") for i in range(20)]
        assert len(_service(cache, records).get_title_suggestions(1, "house-a")) == 8

    def test_tags_lowercased_and_ranked(self, cache):
        records = [
            make_record(1, "Sleep", {}, tags="Nap, Weekend"),
            make_record(2, "Sleep", {}, tags="nap,school"),
            make_record(3, "Sleep", {}, tags=" NAP , ,weekend"),
        ]
        tags = _service(cache, records).get_tag_suggestions(1, "house-a")
        assert tags == ["nap", "weekend", "school"]

    def test_smart_defaults(self, cache):
        records = [
            make_record(1, "Sleep", {}, days_ago=1, tags="nap"),
            make_record(2, "Sleep", {}, days_ago=2, tags="nap, weekend"),
            make_record(3, "Sleep", {}, days_ago=40, tags="old"),
        ]
        defaults = _service(cache, records).get_smart_defaults(1, "house-a")

        assert defaults["suggestedTime"] == "2024-03-15T09:00"
        assert defaults["suggestedTags"] == ["nap", "weekend"]
        assert defaults["commonPatterns"] == {"mostCommonHour": 9, "totalRecords": 2}

    def test_smart_defaults_without_history_use_current_hour(self, cache):
        defaults = _service(cache, []).get_smart_defaults(1, "house-a")
        assert defaults["commonPatterns"] == {"mostCommonHour": 9, "totalRecords": 0}
        assert defaults["suggestedTags"] == []

    def test_general_bundle_is_cached(self, cache):
        store = InMemoryRecordStore([make_record(1, "Sleep", {}, days_ago=1, title="Nap", tags="nap")])
        service = SuggestionService(store, cache, clock=lambda: NOW)

        first = service.get_general_suggestions(1, "house-a")
        second = service.get_general_suggestions(1, "house-a")

        assert first == second
        assert _values(first["titleSuggestions"]) == ["Nap"]
        assert first["tagSuggestions"] == ["nap"]
        assert store.fetch_calls == 3

    def test_store_failure_gives_empty_parts(self, cache):
        service = SuggestionService(FailingRecordStore(), cache, clock=lambda: NOW)
        assert service.get_general_suggestions(1, "house-a") == {
            "titleSuggestions": [],
            "tagSuggestions": [],
            "smartDefaults": {},
        }
