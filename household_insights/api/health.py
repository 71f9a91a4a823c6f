"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime
from household_insights.config import get_settings
from household_insights import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "llm_insights": settings.enable_llm_insights and bool(settings.anthropic_api_key),
            "prompt_style": settings.default_prompt_style or "auto",
        },
        "cache": {
            "insights_ttl_seconds": settings.insights_cache_ttl_seconds,
            "suggestions_ttl_seconds": settings.suggestion_cache_ttl_seconds,
        },
        "timestamp": datetime.utcnow().isoformat()
    }
