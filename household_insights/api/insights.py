"""
Household insight and suggestion endpoints
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from household_insights.config import get_settings
from household_insights.services.insight_service import InsightService
from household_insights.services.llm_service import AnthropicTextGenerator
from household_insights.services.record_store import SQLRecordStore
from household_insights.services.suggestion_service import SuggestionService
from household_insights.utils.cache import get_cache
from household_insights.utils.logger import log

settings = get_settings()

router = APIRouter(prefix="/insights", tags=["insights"])

record_store = SQLRecordStore()
insight_service = InsightService(
    record_store,
    AnthropicTextGenerator(),
    get_cache(),
    prompt_style=settings.default_prompt_style,
    record_limit=settings.insight_record_limit,
)
suggestion_service = SuggestionService(record_store, get_cache())


class InsightsResponse(BaseModel):
    household_id: str
    type: str
    count: int
    insights: List[Dict[str, Any]]
    generated_at: str


class FieldSuggestionsResponse(BaseModel):
    recent: List[Dict[str, Any]]
    frequent: List[Dict[str, Any]]
    contextual: List[Dict[str, Any]]


class GeneralSuggestionsResponse(BaseModel):
    titleSuggestions: List[Dict[str, Any]]
    tagSuggestions: List[str]
    smartDefaults: Dict[str, Any]


@router.get("/{household_id}", response_model=InsightsResponse)
def get_household_insights(
    household_id: str,
    type: str = Query("comprehensive", description="comprehensive, health, growth or behavior"),
    refresh: bool = Query(False, description="Bypass the cache and regenerate")
):
    """
    Insights for a household, cached for a few hours per insight type
    """
    try:
        insights = insight_service.generate_insights(household_id, type, force_refresh=refresh)
    except Exception as e:
        log.error(f"Insight generation error for household {household_id}: {str(e)}")
        raise HTTPException(status_code=503, detail="Household records are temporarily unavailable")

    return InsightsResponse(
        household_id=household_id,
        type=type,
        count=len(insights),
        insights=insights,
        generated_at=datetime.utcnow().isoformat(),
    )


@router.get(
    "/{household_id}/suggestions/fields/{field_id}",
    response_model=FieldSuggestionsResponse
)
def get_field_suggestions(
    household_id: str,
    field_id: str,
    record_type_id: int = Query(...),
    member_id: Optional[int] = Query(None),
    current_value: Optional[str] = Query(None)
):
    """Previously entered values for one field of a record type"""
    return suggestion_service.get_field_suggestions(
        field_id,
        record_type_id,
        household_id,
        member_id=member_id,
        partial_value=current_value
    )


@router.get(
    "/{household_id}/suggestions/general/{record_type_id}",
    response_model=GeneralSuggestionsResponse
)
def get_general_suggestions(
    household_id: str,
    record_type_id: int,
    member_id: Optional[int] = Query(None)
):
    """Title, tag and smart default suggestions for a record type"""
    return suggestion_service.get_general_suggestions(record_type_id, household_id, member_id)


@router.delete("/{household_id}/cache")
def invalidate_household_cache(household_id: str):
    """
    Drop cached insights and suggestions for a household

    Call after the household's records change.
    """
    insight_service.invalidate(household_id)
    return {"success": True, "household_id": household_id}
