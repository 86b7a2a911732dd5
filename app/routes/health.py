# app/routes/health.py
"""
Health check endpoint.
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request):
    """Basic health check - always returns 200 if app is running."""
    fetchers = getattr(request.app.state, "fetchers", None)
    return {
        "status": "ok",
        "service": "crm-dashboard",
        "api_generation": fetchers.generation.value if fetchers else None,
    }
