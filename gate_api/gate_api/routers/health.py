"""Health-check endpoint, registered under ``/api/v1/health``."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from gate_api import __version__
from gate_api.dependencies import SettingsDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(settings: SettingsDep) -> dict[str, Any]:
    """Return service liveness and which collaborators are configured."""
    return {
        "status": "healthy",
        "version": __version__,
        "llm": "configured" if settings.is_llm_configured() else "unconfigured",
        "storage": settings.storage_backend.value,
    }
