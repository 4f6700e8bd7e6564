"""Per-client rate limiting for the versioned API surface.

Uses slowapi's limiter with an in-memory store keyed by remote address. Every
request under ``/api/`` draws from one shared budget per client.
"""

from __future__ import annotations

import logging
from typing import Any

from limits import RateLimitItem
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.responses import Response

from app.schemas.error import ErrorEnvelope

logger = logging.getLogger(__name__)

RATE_LIMITED_PREFIX = "/api/"
RATE_LIMIT_SCOPE = "api"
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def build_limiter() -> Limiter:
    """Create a limiter backed by slowapi's in-memory storage."""
    return Limiter(key_func=get_remote_address)


def rate_limit_exceeded_response(request: Request, limit: RateLimitItem) -> JSONResponse:
    """Return the 429 envelope."""
    logger.warning("Rate limit exceeded: client=%s path=%s limit=%s", get_remote_address(request), request.url.path, limit)
    envelope = ErrorEnvelope(message=RATE_LIMIT_MESSAGE)
    return JSONResponse(status_code=429, content=envelope.to_content())


class ApiRateLimitMiddleware(BaseHTTPMiddleware):
    """Count ``/api/`` requests per client address against a single budget."""

    def __init__(self, app: Any, limiter: Limiter, rate_limit: str) -> None:
        super().__init__(app)
        self._limiter = limiter
        self._limit = parse(rate_limit)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._limiter.enabled or not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)
        if not self._limiter.limiter.hit(self._limit, RATE_LIMIT_SCOPE, get_remote_address(request)):
            return rate_limit_exceeded_response(request, self._limit)
        return await call_next(request)
