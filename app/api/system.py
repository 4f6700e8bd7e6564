"""Service information and liveness routes."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
import time

from fastapi import APIRouter
from fastapi import Depends

from app.api.deps import get_app_settings
from app.core.config import Settings

API_VERSION = "1.0.0"

AVAILABLE_ENDPOINTS = {
    "root": "/",
    "health": "/health",
    "api": "/api/v1",
    "docs": "/docs",
}

_STARTED_AT = time.monotonic()

router = APIRouter(tags=["system"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
def root() -> dict[str, object]:
    """Describe the API and where to find it."""
    return {
        "success": True,
        "message": "E-Commerce Search API",
        "version": API_VERSION,
        "description": "Comparing Elasticsearch vs SQL search performance",
        "endpoints": {
            "health": "/api/v1/admin/health",
            "docs": AVAILABLE_ENDPOINTS["docs"],
            "api": AVAILABLE_ENDPOINTS["api"],
        },
        "features": [
            "Dual search engines (SQL & Elasticsearch)",
            "Performance comparison",
            "Real-time analytics",
            "Advanced filtering",
            "Autocomplete",
        ],
    }


@router.get("/health")
def health() -> dict[str, object]:
    """Liveness probe that never touches the backends."""
    return {
        "success": True,
        "status": "OK",
        "timestamp": _timestamp(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


@router.get("/api/v1/test")
def api_test(settings: Settings = Depends(get_app_settings)) -> dict[str, object]:
    """Confirm the versioned router is mounted."""
    return {
        "success": True,
        "message": "API routes are working!",
        "timestamp": _timestamp(),
        "version": settings.api_version,
    }
