"""Placeholder route groups answering until their phase is delivered."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter
from fastapi import status
from fastapi.responses import JSONResponse

from app.core.errors import async_handler

API_PREFIX = "/api/v1"
PLACEHOLDER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


@dataclass(frozen=True)
class PlannedRouteGroup:
    """A route group that is mounted but not yet implemented."""

    path: str
    label: str
    phase: str

    @property
    def message(self) -> str:
        return f"{self.label} routes will be implemented in Phase {self.phase}"


PRODUCTS = PlannedRouteGroup(path="products", label="Product", phase="3")
SEARCH = PlannedRouteGroup(path="search", label="Search", phase="4-5")
ANALYTICS = PlannedRouteGroup(path="analytics", label="Analytics", phase="7")
BENCHMARK = PlannedRouteGroup(path="benchmark", label="Benchmark", phase="6")
ADMIN = PlannedRouteGroup(path="admin", label="Admin", phase="7")


def add_placeholder_routes(router: APIRouter, group: PlannedRouteGroup, prefix: str = "") -> None:
    """Answer every method on ``prefix`` and all of its subpaths with a 501 stub."""

    @async_handler
    async def placeholder() -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            content={"success": False, "message": group.message},
        )

    placeholder.__name__ = f"{group.path}_placeholder"
    router.add_api_route(prefix, placeholder, methods=PLACEHOLDER_METHODS, include_in_schema=False)
    router.add_api_route(f"{prefix}/{{rest:path}}", placeholder, methods=PLACEHOLDER_METHODS, include_in_schema=False)


def placeholder_router(group: PlannedRouteGroup) -> APIRouter:
    router = APIRouter(prefix=f"{API_PREFIX}/{group.path}", tags=[group.path])
    add_placeholder_routes(router, group)
    return router


router = APIRouter()
for _group in (PRODUCTS, SEARCH, ANALYTICS, BENCHMARK):
    router.include_router(placeholder_router(_group))
