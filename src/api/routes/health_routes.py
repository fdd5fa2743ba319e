"""
Health check route - public, no authentication required.
"""
from fastapi import APIRouter

router = APIRouter()


@router.get(
    "",
    summary="System health check",
)
async def health_check():
    """
    Check system health status.

    Reports whether configuration loads and which upstream services are
    configured. Nothing is contacted, so the probe stays fast.
    """
    health = {
        "status": "healthy",
        "service": "Caravan Ops API",
        "version": "1.0.0",
        "components": {}
    }

    try:
        import config
        health["components"]["config"] = "ok"
    except Exception as e:
        health["components"]["config"] = f"error: {str(e)}"
        health["status"] = "degraded"
        return health

    health["components"]["sheets"] = "configured" if config.GOOGLE_SHEET_ID else "not configured"
    health["components"]["supabase"] = (
        "configured" if config.SUPABASE_URL and config.SUPABASE_ANON_KEY else "not configured"
    )
    health["components"]["allow_list"] = f"{len(config.ALLOWED_EMAILS)} email(s)"

    if "not configured" in health["components"].values():
        health["status"] = "degraded"

    return health
