"""
Tests for compiling household records into a DataCompilation.

Covers:
  - Category grouping and the default category
  - Field statistics and trend direction
  - Skipping unparsable content and schemas
  - Time span labels
  - Pre-flight validation
"""

import pytest

from conftest import make_record, sleep_household
from household_insights.services.data_compiler import (
    DEFAULT_CATEGORY,
    DataCompilation,
    DataCompiler,
    parse_field_schema,
    get_time_span,
    validate_compilation,
)
from household_insights.services.record_store import RecordTypeDef


# ────────────────────────────────────────────
# COMPILE
# ────────────────────────────────────────────


class TestCompile:

    def test_sleep_household_summary(self):
        records, members, record_types = sleep_household()
        compilation = DataCompiler().compile(records, members, record_types)

        assert compilation.total_records == 5
        assert compilation.members == 1
        assert [rt.name for rt in compilation.record_type_structures] == ["Sleep Log"]
        assert compilation.record_type_structures[0].field_count == 2
        assert list(compilation.patterns) == ["Sleep"]

        pattern = compilation.patterns["Sleep"]
        assert pattern.count == 5
        assert pattern.time_span == "5 days"

        hours = pattern.field_analysis["hours"].statistics
        assert hours.mean == pytest.approx(7.0)
        assert hours.min == 6.0
        assert hours.max == 8.0
        assert hours.trend == "increasing"
        assert hours.slope == pytest.approx(0.5)
        assert hours.data_points == 5

    def test_numeric_field_projects_next_value(self):
        records, members, record_types = sleep_household()
        pattern = DataCompiler().compile(records, members, record_types).patterns["Sleep"]

        prediction = pattern.field_analysis["hours"].statistics.prediction
        assert prediction["value"] == pytest.approx(8.5)
        assert prediction["confidence"] == pytest.approx(1.0)

    def test_categorical_field_has_frequency_but_no_statistics(self):
        records, members, record_types = sleep_household()
        pattern = DataCompiler().compile(records, members, record_types).patterns["Sleep"]

        quality = pattern.field_analysis["quality"]
        assert quality.statistics is None
        assert quality.frequency == {"good": 5}
        assert quality.top_values() == [("good", 5)]

    def test_missing_category_uses_default(self):
        records = [make_record(1, None, {"note": "hello"}), make_record(2, "  ", {"note": "hi"})]
        compilation = DataCompiler().compile(records, [], [])
        assert list(compilation.patterns) == [DEFAULT_CATEGORY]
        assert compilation.patterns[DEFAULT_CATEGORY].count == 2

    def test_unparsable_content_is_skipped(self):
        records = [
            make_record(1, "Mood", "{not json", days_ago=0),
            make_record(2, "Mood", '["a list"]', days_ago=1),
            make_record(3, "Mood", {"rating": 4}, days_ago=2),
        ]
        pattern = DataCompiler().compile(records, [], []).patterns["Mood"]

        assert pattern.count == 3
        assert list(pattern.field_analysis) == ["rating"]
        assert pattern.field_analysis["rating"].values == [4]

    def test_nested_dynamic_fields_are_lifted(self):
        records = [make_record(1, "Meals", {"fields": {"field_calories": 500}, "notes": "lunch"})]
        pattern = DataCompiler().compile(records, [], []).patterns["Meals"]
        assert set(pattern.field_analysis) == {"field_calories", "notes"}

    def test_output_is_bounded_by_limits(self):
        records = [make_record(i, "Sleep", {"hours": i}, days_ago=i) for i in range(200)]
        compiler = DataCompiler(max_records=50, max_records_per_category=10, trend_window=5)
        pattern = compiler.compile(records, [], []).patterns["Sleep"]

        assert pattern.count == 50
        assert len(pattern.field_analysis["hours"].values) == 10
        assert pattern.field_analysis["hours"].statistics.data_points == 10

    def test_trend_uses_most_recent_window(self):
        """Old values rise, the latest five fall: the label follows the latest five."""
        hours = [5, 6, 7, 8, 9, 9, 8, 7, 6, 5]  # oldest first
        records = [
            make_record(i, "Sleep", {"hours": h}, days_ago=len(hours) - i)
            for i, h in enumerate(hours)
        ]
        pattern = DataCompiler().compile(records[::-1], [], []).patterns["Sleep"]
        assert pattern.field_analysis["hours"].statistics.trend == "decreasing"

    def test_most_common_fields_sorted_by_use(self):
        records = [
            make_record(1, "Health", {"temp": 37.0, "note": "ok"}, days_ago=0),
            make_record(2, "Health", {"temp": 37.5}, days_ago=1),
            make_record(3, "Health", {"temp": 38.0, "symptom": "cough"}, days_ago=2),
        ]
        pattern = DataCompiler().compile(records, [], []).patterns["Health"]
        assert pattern.most_common_fields[0] == "temp"

    def test_to_dict(self):
        records, members, record_types = sleep_household()
        data = DataCompiler().compile(records, members, record_types).to_dict()
        assert data["total_records"] == 5
        assert data["patterns"]["Sleep"]["count"] == 5


# ────────────────────────────────────────────
# FIELD SCHEMA
# ────────────────────────────────────────────


class TestParseFieldSchema:

    def test_json_text(self):
        fields = parse_field_schema('[{"name": "hours", "type": "number", "required": true}]')
        assert len(fields) == 1
        assert fields[0].name == "hours"
        assert fields[0].type == "number"
        assert fields[0].required is True

    @pytest.mark.parametrize("raw", [None, "", "{broken", '{"name": "x"}', 42])
    def test_unreadable_schema_is_empty(self, raw):
        assert parse_field_schema(raw) == []

    def test_entries_without_name_are_skipped(self):
        fields = parse_field_schema([{"type": "text"}, {"label": "Mood"}, "junk"])
        assert [f.name for f in fields] == ["Mood"]
        assert fields[0].type == "text"

    def test_bad_schema_does_not_break_compilation(self):
        record_types = [RecordTypeDef(id=1, name="Broken", category=None, description=None, fields="{oops")]
        compilation = DataCompiler().compile([], [], record_types)
        assert compilation.record_type_structures[0].field_count == 0


# ────────────────────────────────────────────
# TIME SPAN
# ────────────────────────────────────────────


@pytest.mark.parametrize("days, expected", [
    (0, "1 day"),
    (1, "2 days"),
    (3, "4 days"),
    (10, "2 weeks"),
    (45, "2 months"),
])
def test_time_span_labels(days, expected):
    records = [make_record(1, "X", {}, days_ago=0), make_record(2, "X", {}, days_ago=days)]
    assert get_time_span(records) == expected


def test_time_span_without_dates():
    assert get_time_span([]) == "No data"


# ────────────────────────────────────────────
# PRE-FLIGHT
# ────────────────────────────────────────────


class TestValidateCompilation:

    def test_valid(self):
        records, members, record_types = sleep_household()
        compilation = DataCompiler().compile(records, members, record_types)
        assert validate_compilation(compilation) == (True, [])

    def test_zero_members_fails(self):
        records, _, record_types = sleep_household()
        compilation = DataCompiler().compile(records, [], record_types)
        is_valid, errors = validate_compilation(compilation)
        assert not is_valid
        assert "Invalid members count" in errors

    def test_empty_compilation_lists_every_problem(self):
        is_valid, errors = validate_compilation(DataCompilation(total_records=-1, members=0))
        assert not is_valid
        assert len(errors) == 4

    def test_missing_compilation(self):
        assert validate_compilation(None) == (False, ["Data compilation is missing"])
