"""
Insight Service
Runs one insight generation cycle for a household:

    cache -> records -> compile -> preflight -> prompt -> text generator
          -> parse / validate -> cache

Every path ends in validated insights (possibly none) or the fixed fallback
set. Only a record store failure propagates to the caller.
"""
from typing import Any, Dict, List, Optional

from household_insights.config import get_settings
from household_insights.services.data_compiler import DataCompilation, DataCompiler, validate_compilation
from household_insights.services.insight_validator import (
    generate_fallback_insights,
    validate_and_parse_response,
)
from household_insights.services.llm_service import TextGenerator
from household_insights.services.prompt_builder import PromptRouter
from household_insights.services.record_store import RecordStore
from household_insights.utils.cache import TieredCache, insights_cache_key
from household_insights.utils.logger import log

settings = get_settings()

COMPREHENSIVE_INSIGHTS = "comprehensive"

# Insight type requested -> (insight types kept, category keywords kept)
TYPE_FILTERS = {
    "health": (("health",), ("health", "medical", "wellness")),
    "growth": (("growth", "development"), ("growth", "development", "milestone")),
    "behavior": (("behavior",), ("behavior", "mood", "activity")),
}


def filter_insights_by_type(insights: List[Dict[str, Any]], insight_type: str) -> List[Dict[str, Any]]:
    """Narrow insights to one area; comprehensive or unknown types keep everything"""
    rule = TYPE_FILTERS.get(insight_type)
    if rule is None:
        return insights

    kept_types, category_keywords = rule
    return [
        insight for insight in insights
        if insight.get("type") in kept_types
        or any(k in str(insight.get("category", "")).lower() for k in category_keywords)
    ]


def enrich_insight_data(insights: List[Dict[str, Any]], compilation: DataCompilation) -> List[Dict[str, Any]]:
    """
    Attach compiled figures to insights whose category names a compiled pattern

    Sets dataPoints and timeframe from the pattern, the trend of its first
    numeric field, and a next-value prediction per numeric field.
    """
    patterns = {name.lower(): pattern for name, pattern in compilation.patterns.items()}

    for insight in insights:
        pattern = patterns.get(str(insight.get("category", "")).lower())
        if pattern is None:
            continue

        data = insight.setdefault("data", {})
        data["dataPoints"] = pattern.count
        data["timeframe"] = pattern.time_span

        numeric = [(name, obs.statistics) for name, obs in pattern.field_analysis.items() if obs.statistics]
        if not numeric:
            continue

        data["trend"] = numeric[0][1].trend
        data["predictions"] = {name: dict(stats.prediction) for name, stats in numeric}

    return insights


class InsightService:
    """
    Generates household insights

    Args:
        record_store: Source of records, members and record type definitions
        text_generator: External generator; None means the capability is absent
        cache: Tiered cache shared with suggestion lookups
        compiler: DataCompiler used for each cycle
        prompt_style: Fixed prompt style; None lets the router pick one
        record_limit: Most recent records fetched per cycle
    """

    def __init__(
        self,
        record_store: RecordStore,
        text_generator: Optional[TextGenerator],
        cache: TieredCache,
        compiler: Optional[DataCompiler] = None,
        prompt_style: Optional[str] = None,
        record_limit: int = 1000
    ):
        self.record_store = record_store
        self.text_generator = text_generator
        self.cache = cache
        self.compiler = compiler or DataCompiler()
        self.prompt_style = prompt_style
        self.record_limit = record_limit
        self.router = PromptRouter()

    def generate_insights(
        self,
        household_id: str,
        insight_type: str = COMPREHENSIVE_INSIGHTS,
        force_refresh: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Insights for a household, served from cache when still fresh

        Raises:
            Whatever the record store raises; nothing else escapes.
        """
        cache_key = insights_cache_key(household_id, insight_type)

        if not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                log.debug(f"Insight cache hit for {cache_key}")
                return cached

        insights = self._run_cycle(household_id)

        if insight_type != COMPREHENSIVE_INSIGHTS:
            insights = filter_insights_by_type(insights, insight_type)
            log.info(f"Filtered insights to {len(insights)} of type {insight_type}")

        self.cache.set(
            cache_key,
            insights,
            ttl=settings.insights_cache_ttl_seconds,
            scope=household_id
        )

        return insights

    def invalidate(self, household_id: str) -> None:
        self.cache.invalidate(household_id)

    def _run_cycle(self, household_id: str) -> List[Dict[str, Any]]:
        records = self.record_store.fetch_records(
            household_id,
            limit=self.record_limit,
            recent_first=True
        )

        if not records:
            log.info(f"No records for household {household_id}, nothing to analyse")
            return []

        members = self.record_store.fetch_members(household_id)
        record_types = self.record_store.fetch_record_type_definitions(household_id)

        compilation = self.compiler.compile(records, members, record_types)

        is_valid, errors = validate_compilation(compilation)
        if not is_valid:
            log.warning(f"Data compilation failed preflight for household {household_id}: {errors}")
            return generate_fallback_insights("Invalid data compilation")

        style_id = self.router.select_style(compilation, self.prompt_style)
        prompt = self.router.generate(style_id, compilation)
        if not self.router.validate(style_id, prompt):
            return generate_fallback_insights(f"Generated {style_id} prompt failed validation")

        if self.text_generator is None or not self.text_generator.is_available():
            log.info("Text generator unavailable, using fallback insights")
            return generate_fallback_insights("Text generator unavailable")

        log.info(
            f"Generating insights for household {household_id} with {style_id} prompt "
            f"({len(prompt)} characters, {compilation.total_records} records)"
        )

        try:
            response = self.text_generator.generate(prompt, settings.llm_max_tokens)
        except Exception as e:
            log.error(f"Error generating insights for household {household_id}: {str(e)}")
            return generate_fallback_insights("AI service error")

        insights = validate_and_parse_response(response)
        return enrich_insight_data(insights, compilation)
