"""Admin API routes."""

from __future__ import annotations

from elasticsearch import Elasticsearch
from fastapi import APIRouter
from fastapi import Depends
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app.api.deps import get_app_settings
from app.api.deps import get_engine
from app.api.deps import get_search_client
from app.api.placeholders import ADMIN
from app.api.placeholders import API_PREFIX
from app.api.placeholders import add_placeholder_routes
from app.core.config import Settings
from app.db.base import check_database
from app.schemas.admin import AdminHealth
from app.schemas.admin import DependencyStatus
from app.schemas.admin import IndexStatsResponse
from app.search.client import check_search
from app.search.client import get_index_stats

router = APIRouter(prefix=f"{API_PREFIX}/admin", tags=["admin"])


@router.get("/health", response_model=AdminHealth)
def admin_health_endpoint(
    engine: Engine = Depends(get_engine),
    search_client: Elasticsearch = Depends(get_search_client),
) -> JSONResponse:
    """Report database and search-engine reachability; 503 when either is down."""
    dependencies = DependencyStatus(
        database="ok" if check_database(engine) else "unreachable",
        elasticsearch="ok" if check_search(search_client) else "unreachable",
    )
    healthy = dependencies.database == "ok" and dependencies.elasticsearch == "ok"
    payload = AdminHealth(
        success=healthy,
        message="OK" if healthy else "Service degraded",
        status="OK" if healthy else "DEGRADED",
        dependencies=dependencies,
    )
    return JSONResponse(status_code=200 if healthy else 503, content=payload.model_dump())


@router.get("/index/stats", response_model=IndexStatsResponse)
def index_stats_endpoint(
    settings: Settings = Depends(get_app_settings),
    search_client: Elasticsearch = Depends(get_search_client),
) -> IndexStatsResponse:
    """Return primary-shard statistics for the configured product index."""
    return IndexStatsResponse(data=get_index_stats(search_client, settings.search.index))


add_placeholder_routes(router, ADMIN)
