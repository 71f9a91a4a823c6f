"""
Data Compiler

Builds a size-bounded DataCompilation from a household's raw records, members
and record type definitions. Output size depends on the number of categories
and fields, never on how much history the household has.
"""
import json
import math
from collections import Counter
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from household_insights.ml.regression import calculate_trend, classify_trend, predict_next_value
from household_insights.services.record_store import Member, RawRecord, RecordTypeDef
from household_insights.utils.helpers import parse_datetime, parse_json_object, parse_number
from household_insights.utils.logger import log

DEFAULT_CATEGORY = "Other"


@dataclass
class FieldSpec:
    name: str
    type: str
    required: bool = False


@dataclass
class RecordTypeStructure:
    name: str
    category: Optional[str]
    description: Optional[str]
    field_count: int
    fields: List[FieldSpec] = field(default_factory=list)


@dataclass
class FieldStatistics:
    mean: float
    min: float
    max: float
    trend: str  # increasing, decreasing, stable
    slope: float
    r2: float
    data_points: int
    prediction: Dict[str, float] = field(default_factory=dict)  # next value and its confidence


@dataclass
class FieldObservation:
    """Everything seen for one field within one category"""
    name: str
    values: List[Any] = field(default_factory=list)
    frequency: Dict[str, int] = field(default_factory=dict)
    statistics: Optional[FieldStatistics] = None

    def add(self, value: Any) -> None:
        self.values.append(value)
        key = _frequency_key(value)
        self.frequency[key] = self.frequency.get(key, 0) + 1

    def top_values(self, limit: int = 2) -> List[Tuple[str, int]]:
        return Counter(self.frequency).most_common(limit)


@dataclass
class CategoryPattern:
    count: int
    field_analysis: Dict[str, FieldObservation]
    time_span: str
    most_common_fields: List[str]


@dataclass
class DataCompilation:
    """Transient summary feeding one insight generation cycle"""
    total_records: int
    members: int
    record_type_structures: List[RecordTypeStructure] = field(default_factory=list)
    patterns: Dict[str, CategoryPattern] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _frequency_key(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def parse_field_schema(raw_fields: Any) -> List[FieldSpec]:
    """
    Parse a record type's field definitions

    Accepts a JSON array (text) or an already-decoded list. Anything that
    can't be read as a list of field objects yields an empty list.
    """
    if raw_fields is None or raw_fields == "":
        return []

    fields = raw_fields
    if isinstance(raw_fields, (str, bytes)):
        try:
            fields = json.loads(raw_fields)
        except (TypeError, ValueError):
            log.debug("Unparsable record type field schema, treating as empty")
            return []

    if not isinstance(fields, list):
        return []

    specs = []
    for item in fields:
        if not isinstance(item, dict):
            continue
        name = item.get("name") or item.get("label") or item.get("id")
        if not name:
            continue
        specs.append(FieldSpec(
            name=str(name),
            type=str(item.get("type") or "text"),
            required=bool(item.get("required", False)),
        ))
    return specs


def get_time_span(records: Sequence[RawRecord]) -> str:
    """Coarse label for the period covered by a set of records"""
    dates = sorted(d for d in (parse_datetime(r.created_at) for r in records) if d is not None)
    if not dates:
        return "No data"

    days_diff = math.ceil((dates[-1] - dates[0]).total_seconds() / 86400)

    if days_diff == 0:
        return "1 day"
    if days_diff == 1:
        return "2 days"
    if days_diff < 7:
        return f"{days_diff + 1} days"
    if days_diff < 30:
        return f"{math.ceil(days_diff / 7)} weeks"
    return f"{math.ceil(days_diff / 30)} months"


def validate_compilation(compilation: Optional[DataCompilation]) -> Tuple[bool, List[str]]:
    """
    Pre-flight check run before any external generation call

    Returns:
        (is_valid, errors)
    """
    errors = []

    if compilation is None:
        return False, ["Data compilation is missing"]

    if not isinstance(compilation.total_records, int) or compilation.total_records < 0:
        errors.append("Invalid total_records count")

    if not isinstance(compilation.members, int) or compilation.members < 1:
        errors.append("Invalid members count")

    if not compilation.record_type_structures:
        errors.append("No record type structures available")

    if not compilation.patterns:
        errors.append("No patterns found")

    return len(errors) == 0, errors


class DataCompiler:
    """
    Compiles household records into a DataCompilation

    Args:
        max_records: Records (most recent first) considered for pattern analysis
        max_records_per_category: Records per category whose fields are analysed
        trend_window: Numeric points used for each field's trend
        max_common_fields: Field names reported per category
    """

    def __init__(
        self,
        max_records: int = 50,
        max_records_per_category: int = 10,
        trend_window: int = 5,
        max_common_fields: int = 5
    ):
        self.max_records = max_records
        self.max_records_per_category = max_records_per_category
        self.trend_window = trend_window
        self.max_common_fields = max_common_fields

    def compile(
        self,
        records: Sequence[RawRecord],
        members: Sequence[Member],
        record_types: Sequence[RecordTypeDef]
    ) -> DataCompilation:
        """Records are expected most recent first, as the record store returns them"""
        compilation = DataCompilation(
            total_records=len(records),
            members=len(members),
        )

        for record_type in record_types:
            fields = parse_field_schema(record_type.fields)
            compilation.record_type_structures.append(RecordTypeStructure(
                name=record_type.name,
                category=record_type.category,
                description=record_type.description,
                field_count=len(fields),
                fields=fields,
            ))

        categorized: Dict[str, List[RawRecord]] = {}
        for record in records[:self.max_records]:
            category = (record.category or "").strip() or DEFAULT_CATEGORY
            categorized.setdefault(category, []).append(record)

        for category, category_records in categorized.items():
            compilation.patterns[category] = self._analyze_category(category_records)

        log.debug(
            f"Compiled {compilation.total_records} records into "
            f"{len(compilation.patterns)} category patterns"
        )
        return compilation

    def _analyze_category(self, records: List[RawRecord]) -> CategoryPattern:
        field_analysis: Dict[str, FieldObservation] = {}

        # Oldest first, so trends read forward in time
        recent = list(reversed(records[:self.max_records_per_category]))

        for record in recent:
            content = parse_json_object(record.content)
            if content is None:
                log.debug(f"Skipping record {record.id}: content is not a JSON object")
                continue

            for key, value in self._flatten_content(content).items():
                observation = field_analysis.get(key)
                if observation is None:
                    observation = field_analysis[key] = FieldObservation(name=key)
                observation.add(value)

        for observation in field_analysis.values():
            observation.statistics = self._summarize(observation.values)

        most_common = sorted(
            field_analysis.values(),
            key=lambda obs: len(obs.values),
            reverse=True
        )

        return CategoryPattern(
            count=len(records),
            field_analysis=field_analysis,
            time_span=get_time_span(records),
            most_common_fields=[obs.name for obs in most_common[:self.max_common_fields]],
        )

    @staticmethod
    def _flatten_content(content: Dict[str, Any]) -> Dict[str, Any]:
        """Dynamic-form records nest their values under "fields"; lift them up"""
        nested = content.get("fields")
        if not isinstance(nested, dict):
            return content
        flattened = {k: v for k, v in content.items() if k != "fields"}
        flattened.update(nested)
        return flattened

    def _summarize(self, values: List[Any]) -> Optional[FieldStatistics]:
        numeric = [n for n in (parse_number(v) for v in values) if n is not None]
        if len(numeric) < 2:
            return None

        window = numeric[-self.trend_window:]
        trend = calculate_trend(window)

        return FieldStatistics(
            mean=sum(numeric) / len(numeric),
            min=min(numeric),
            max=max(numeric),
            trend=classify_trend(window),
            slope=trend.slope,
            r2=trend.r2,
            data_points=len(numeric),
            prediction=predict_next_value(window),
        )
