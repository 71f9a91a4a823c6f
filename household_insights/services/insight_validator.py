"""
Insight Validator and Fallback

Turns an untrusted free-text response into insights that satisfy a fixed
structural contract:

1. Reject (fallback set) responses that are not text or are too short
2. Parse INSIGHT / RECOMMENDATION blocks into candidates
3. Synthesize one candidate when no block is found
4. Discard every candidate that fails validate_insight()
5. Wrap a substantial response in one generic insight if nothing survives

Nothing here raises; the fixed fallback set is the floor.
"""
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Tuple

from household_insights.utils.logger import log

INSIGHT_TYPES = ("growth", "health", "behavior", "development", "prediction")
CONFIDENCE_LEVELS = ("high", "medium", "low")
IMPORTANCE_LEVELS = ("critical", "high", "medium", "low")
TREND_LABELS = ("increasing", "decreasing", "stable", "cyclical")

REQUIRED_FIELDS = (
    "id",
    "type",
    "category",
    "title",
    "description",
    "confidence",
    "importance",
    "recommendations",
)

MIN_RESPONSE_LENGTH = 20
MAX_RESPONSE_LENGTH = 5000
GENERIC_INSIGHT_MIN_LENGTH = 50
MIN_DESCRIPTION_LENGTH = 10
SYNTHESIZED_DESCRIPTION_LENGTH = 200
MAX_EXTRACTED_RECOMMENDATIONS = 3

DEFAULT_RECOMMENDATION = "Review the full AI analysis for detailed recommendations"
GENERIC_RECOMMENDATION = "Continue monitoring household patterns and activities"

FALLBACK_CATEGORIES = ("Data Tracking", "Family Wellness")

# Evaluated top to bottom; first match wins, "behavior" when nothing matches.
# Each rule: (keywords matched in the category, keywords matched in the content, type)
TYPE_RULES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...], str], ...] = (
    (
        ("health",),
        ("health", "checkup", "symptom", "fever", "medicine", "doctor", "medical"),
        "health",
    ),
    (
        ("growth",),
        ("height", "weight", "development", "milestone"),
        "growth",
    ),
    (
        ("prediction", "forecast"),
        ("predict", "future", "trend"),
        "prediction",
    ),
    (
        ("development",),
        ("learn", "skill", "progress"),
        "development",
    ),
)
DEFAULT_INSIGHT_TYPE = "behavior"

TYPE_CATEGORIES = {
    "health": "Health Analysis",
    "growth": "Growth Patterns",
    "development": "Development Tracking",
    "prediction": "Predictive Analysis",
    "behavior": "Behavioral Insights",
}

TYPE_TITLES = {
    "health": "AI Health Pattern Analysis",
    "growth": "Growth Trend Analysis",
    "development": "Development Progress Insights",
    "prediction": "Predictive Modeling Results",
    "behavior": "Behavioral Pattern Analysis",
}

_INSIGHT_BLOCK = re.compile(
    r"INSIGHT\s*\d+\s*:\s*(?P<category>[^\n]*)\n+"
    r"(?P<description>(?:(?!INSIGHT\s*\d+\s*:).)+?)\n+\s*"
    r"(?:RECOMMENDATION|ACTION)\s*:\s*(?P<recommendation>[^\n]+)",
    re.IGNORECASE | re.DOTALL,
)

_LEADING_PHRASES = (
    re.compile(r"^(Here are?|Based on|Looking at).*?:\s*", re.IGNORECASE),
    re.compile(r"^(The|This|I can see)[^.]*\.\s*"),
)

_RECOMMENDATION_PATTERNS = (
    re.compile(r"\brecommends?\s+(.+?)(?=\.|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bsuggests?\s+(.+?)(?=\.|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\bconsider\s+(.+?)(?=\.|$)", re.IGNORECASE | re.MULTILINE),
    re.compile(r"\btry\s+(.+?)(?=\.|$)", re.IGNORECASE | re.MULTILINE),
)


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def _base_data(timeframe: str = "recent", data_points: int = 0, trend: str = "stable") -> Dict[str, Any]:
    return {"trend": trend, "timeframe": timeframe, "dataPoints": data_points}


# ==================== TYPE INFERENCE ====================

def infer_insight_type(category: str, content: str) -> str:
    """Classify an insight by keyword rules in fixed priority order"""
    lower_category = (category or "").lower()
    lower_content = (content or "").lower()

    for category_keywords, content_keywords, insight_type in TYPE_RULES:
        if any(k in lower_category for k in category_keywords):
            return insight_type
        if any(k in lower_content for k in content_keywords):
            return insight_type

    return DEFAULT_INSIGHT_TYPE


# ==================== VALIDATION ====================

def validate_insight(insight: Any) -> bool:
    """Structural contract every emitted insight must satisfy"""
    if not isinstance(insight, dict):
        return False

    for field_name in REQUIRED_FIELDS:
        if not insight.get(field_name):
            log.warning(f"Insight missing required field: {field_name}")
            return False

    description = insight["description"]
    if not isinstance(description, str) or len(description) < MIN_DESCRIPTION_LENGTH:
        log.warning("Insight description too short")
        return False

    recommendations = insight["recommendations"]
    if not isinstance(recommendations, list) or len(recommendations) == 0:
        log.warning("Insight has no recommendations")
        return False

    if insight["type"] not in INSIGHT_TYPES:
        log.warning(f"Insight has unknown type: {insight['type']}")
        return False

    if insight["confidence"] not in CONFIDENCE_LEVELS or insight["importance"] not in IMPORTANCE_LEVELS:
        log.warning("Insight has unknown confidence or importance level")
        return False

    return True


# ==================== PARSING ====================

def _clean_category(raw: str) -> str:
    return raw.strip().strip("*#[]").strip()


def parse_response(response: str) -> List[Dict[str, Any]]:
    """
    Parse INSIGHT blocks into candidate insights

    When no block yields a candidate, one candidate is synthesized from the
    start of the response. Candidates are not validated here.
    """
    insights: List[Dict[str, Any]] = []
    timestamp = _timestamp_ms()

    for index, match in enumerate(_INSIGHT_BLOCK.finditer(response)):
        category = _clean_category(match.group("category"))
        description = " ".join(line.strip() for line in match.group("description").splitlines() if line.strip())
        recommendation = match.group("recommendation").strip().strip("*").strip()

        if not description or not recommendation:
            continue

        category = category or "General"
        insights.append({
            "id": f"ai-insight-{timestamp}-{index}",
            "type": infer_insight_type(category, description),
            "category": category,
            "title": f"AI Insight: {category}",
            "description": description,
            "confidence": "medium",
            "importance": "medium",
            "data": _base_data(),
            "recommendations": [recommendation],
            "createdAt": _now_iso(),
        })

    if not insights and len(response) > MIN_RESPONSE_LENGTH:
        inferred_type = infer_insight_type("AI Analysis", response)
        description = response[:SYNTHESIZED_DESCRIPTION_LENGTH]
        if len(response) > SYNTHESIZED_DESCRIPTION_LENGTH:
            description += "..."

        insights.append({
            "id": f"ai-insight-fallback-{timestamp}",
            "type": inferred_type,
            "category": TYPE_CATEGORIES[inferred_type],
            "title": TYPE_TITLES[inferred_type],
            "description": description,
            "confidence": "medium",
            "importance": "medium",
            "data": _base_data(),
            "recommendations": [DEFAULT_RECOMMENDATION],
            "createdAt": _now_iso(),
        })

    return insights


def extract_main_content(response: str) -> str:
    """First few sentences of an unstructured response, minus stock openers"""
    cleaned = response.strip()
    for pattern in _LEADING_PHRASES:
        cleaned = pattern.sub("", cleaned, count=1).strip()

    first_sentences = ".".join(cleaned.split(".")[:3]).strip().rstrip(".")
    if len(first_sentences) > MIN_RESPONSE_LENGTH:
        return first_sentences + "."

    return (cleaned or response.strip())[:SYNTHESIZED_DESCRIPTION_LENGTH]


def extract_recommendations(response: str) -> List[str]:
    """Pull up to three recommend/suggest/consider/try phrases out of free text"""
    recommendations: List[str] = []

    for pattern in _RECOMMENDATION_PATTERNS:
        for match in pattern.finditer(response):
            recommendation = match.group(1).strip()
            if len(recommendation) > 10 and len(recommendations) < MAX_EXTRACTED_RECOMMENDATIONS:
                recommendations.append(recommendation)

    if not recommendations:
        recommendations.append(GENERIC_RECOMMENDATION)

    return recommendations


def create_generic_insight(response: str) -> List[Dict[str, Any]]:
    """Wrap a substantial response that produced no valid candidate"""
    insight = {
        "id": f"ai-fallback-{_timestamp_ms()}",
        "type": "behavior",
        "category": "General Analysis",
        "title": "AI Household Analysis",
        "description": extract_main_content(response),
        "confidence": "low",
        "importance": "medium",
        "data": _base_data(),
        "recommendations": extract_recommendations(response),
        "createdAt": _now_iso(),
    }
    return [insight] if validate_insight(insight) else []


# ==================== FALLBACK ====================

def generate_fallback_insights(reason: str) -> List[Dict[str, Any]]:
    """Fixed two-entry insight set used whenever generation cannot proceed"""
    log.info(f"Generating fallback insights due to: {reason}")

    created_at = _now_iso()
    fallback = [
        {
            "id": "fallback-data-tracking",
            "type": "behavior",
            "category": FALLBACK_CATEGORIES[0],
            "title": "Data Collection Progress",
            "description": "Your family is building a valuable record of daily activities and wellness patterns.",
            "confidence": "medium",
            "importance": "medium",
            "data": _base_data(timeframe="ongoing", data_points=1),
            "recommendations": [
                "Continue tracking daily activities to build more comprehensive insights",
                "Try adding sleep or mood records for better wellness analysis",
            ],
            "createdAt": created_at,
        },
        {
            "id": "fallback-family-wellness",
            "type": "health",
            "category": FALLBACK_CATEGORIES[1],
            "title": "Wellness Tracking Opportunity",
            "description": "Regular tracking helps identify patterns that can improve your family's wellbeing.",
            "confidence": "high",
            "importance": "medium",
            "data": _base_data(timeframe="current", data_points=1),
            "recommendations": [
                "Consider tracking key wellness metrics like sleep quality and mood",
                "Review your data weekly to identify helpful patterns",
            ],
            "createdAt": created_at,
        },
    ]
    return [insight for insight in fallback if validate_insight(insight)]


def validate_and_parse_response(response: Any) -> List[Dict[str, Any]]:
    """Full response handling: reject, truncate, parse, validate, wrap"""
    if not response or not isinstance(response, str):
        log.error("Invalid AI response: not a string")
        return generate_fallback_insights("Invalid AI response format")

    if len(response) < MIN_RESPONSE_LENGTH:
        log.error("AI response too short")
        return generate_fallback_insights("AI response too short")

    if len(response) > MAX_RESPONSE_LENGTH:
        log.warning("AI response very long, truncating")
        response = response[:MAX_RESPONSE_LENGTH]

    candidates = parse_response(response)
    validated = [insight for insight in candidates if validate_insight(insight)]

    if not validated:
        log.warning("No valid insights parsed from AI response")
        if len(response) > GENERIC_INSIGHT_MIN_LENGTH:
            return create_generic_insight(response)
        return []

    log.info(f"Validated {len(validated)} insights from AI response")
    return validated
