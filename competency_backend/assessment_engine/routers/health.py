"""Health and diagnostics endpoints."""
from __future__ import annotations

from fastapi import APIRouter

from assessment_engine.core.config import get_settings

router = APIRouter(tags=["health"])


# PUBLIC_INTERFACE
@router.get("/", summary="Health Check", description="Simple health check endpoint.", operation_id="health_check")
def health_check():
    """Return service status and the active data provider."""
    return {"status": "ok", "data_provider": get_settings().data_provider}
