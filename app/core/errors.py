"""API error envelope, failure classification and exception handler registration."""

from __future__ import annotations

from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
import functools
import inspect
import logging
import traceback
from typing import Any
from typing import TypeVar

from elasticsearch import ApiError as SearchApiError
from elasticsearch import TransportError as SearchTransportError
from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import jwt
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from app.core.identifiers import CastError
from app.db.errors import ModelValidationError
from app.db.errors import is_unique_violation
from app.schemas.error import ErrorDebug
from app.schemas.error import ErrorEnvelope
from app.schemas.error import FieldError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Internal Server Error"

T = TypeVar("T")


class APIError(Exception):
    """Failure carrying an explicit HTTP status for handlers to raise directly."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(APIError):
    """Convenience exception for missing resources."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class ErrorKind(str, Enum):
    FIELD_VALIDATION = "field_validation"
    UNIQUE_VIOLATION = "unique_violation"
    DATABASE = "database"
    SEARCH_ENGINE = "search_engine"
    REQUEST_VALIDATION = "request_validation"
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"
    CAST = "cast"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ErrorRule:
    """One row of the ordered classification table."""

    kind: ErrorKind
    matches: Callable[[BaseException], bool]
    status_code: int
    message: str | Callable[[BaseException], str]
    field_errors: Callable[[BaseException], list[FieldError]] | None = None

    def message_for(self, exc: BaseException) -> str:
        if callable(self.message):
            return self.message(exc)
        return self.message


@dataclass(frozen=True)
class NormalizedError:
    """Status code and envelope produced for a single failure."""

    kind: ErrorKind
    status_code: int
    envelope: ErrorEnvelope


def _is_instance(*types: type[BaseException]) -> Callable[[BaseException], bool]:
    return lambda exc: isinstance(exc, types)


def _is_malformed_token(exc: BaseException) -> bool:
    # ExpiredSignatureError subclasses InvalidTokenError.
    return isinstance(exc, jwt.InvalidTokenError) and not isinstance(exc, jwt.ExpiredSignatureError)


def _model_field_errors(exc: BaseException) -> list[FieldError]:
    return [FieldError(field=issue.field, message=issue.message) for issue in getattr(exc, "issues", ())]


def _cast_message(exc: BaseException) -> str:
    return f"Invalid {getattr(exc, 'path', None)}: {getattr(exc, 'value', None)}"


# First match wins. Kinds are not mutually exclusive (every IntegrityError is
# also a SQLAlchemyError), so new rules must be slotted in deliberately.
CLASSIFICATION_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        kind=ErrorKind.FIELD_VALIDATION,
        matches=_is_instance(ModelValidationError),
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Validation error",
        field_errors=_model_field_errors,
    ),
    ErrorRule(
        kind=ErrorKind.UNIQUE_VIOLATION,
        matches=is_unique_violation,
        status_code=status.HTTP_409_CONFLICT,
        message="Resource already exists",
    ),
    ErrorRule(
        kind=ErrorKind.DATABASE,
        matches=_is_instance(SQLAlchemyError),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Database error",
    ),
    ErrorRule(
        kind=ErrorKind.SEARCH_ENGINE,
        matches=_is_instance(SearchApiError, SearchTransportError),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Elasticsearch error",
    ),
    ErrorRule(
        kind=ErrorKind.REQUEST_VALIDATION,
        matches=_is_instance(RequestValidationError, PydanticValidationError),
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Validation failed",
    ),
    ErrorRule(
        kind=ErrorKind.TOKEN_INVALID,
        matches=_is_malformed_token,
        status_code=status.HTTP_401_UNAUTHORIZED,
        message="Invalid token",
    ),
    ErrorRule(
        kind=ErrorKind.TOKEN_EXPIRED,
        matches=_is_instance(jwt.ExpiredSignatureError),
        status_code=status.HTTP_401_UNAUTHORIZED,
        message="Token expired",
    ),
    ErrorRule(
        kind=ErrorKind.CAST,
        matches=_is_instance(CastError),
        status_code=status.HTTP_400_BAD_REQUEST,
        message=_cast_message,
    ),
)


def _exception_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    detail = getattr(exc, "detail", None)
    if isinstance(detail, str) and detail:
        return detail
    return str(exc)


def _declared_status(exc: BaseException) -> int:
    declared = getattr(exc, "status_code", None)
    if isinstance(declared, int) and not isinstance(declared, bool) and declared >= 400:
        return declared
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


class ErrorNormalizer:
    """Translate any failure raised while serving a request into the error envelope.

    The classification is a pure function of the failure and the ``debug``
    flag fixed at construction; the only side effect is the log record
    written by :meth:`handle`.
    """

    def __init__(self, *, debug: bool, rules: Sequence[ErrorRule] = CLASSIFICATION_RULES) -> None:
        self._debug = debug
        self._rules = tuple(rules)

    @property
    def debug(self) -> bool:
        return self._debug

    def classify(self, exc: BaseException) -> ErrorRule | None:
        """Return the first rule matching ``exc``, or None when unclassified."""
        for rule in self._rules:
            if rule.matches(exc):
                return rule
        return None

    def normalize(self, exc: BaseException) -> NormalizedError:
        """Map ``exc`` to its status code and envelope."""
        rule = self.classify(exc)
        field_errors: list[FieldError] | None = None
        if rule is None:
            kind = ErrorKind.UNCLASSIFIED
            status_code = _declared_status(exc)
            message = _exception_message(exc) or DEFAULT_ERROR_MESSAGE
        else:
            kind = rule.kind
            status_code = rule.status_code
            message = rule.message_for(exc)
            if rule.field_errors is not None:
                field_errors = rule.field_errors(exc)

        debug = None
        if self._debug:
            debug = ErrorDebug(name=type(exc).__name__, stack=_format_stack(exc))

        envelope = ErrorEnvelope(message=message, errors=field_errors, error=debug)
        return NormalizedError(kind=kind, status_code=status_code, envelope=envelope)

    def log(self, exc: BaseException, *, method: str, path: str) -> None:
        """Write the operational log record for a failed request."""
        logger.error(
            "Error occurred: message=%s path=%s method=%s",
            _exception_message(exc),
            path,
            method,
            exc_info=exc if self._debug else None,
        )

    def handle(self, request: Request, exc: BaseException) -> JSONResponse:
        """Log ``exc`` and build the JSON response for ``request``."""
        self.log(exc, method=request.method, path=request.url.path)
        normalized = self.normalize(exc)
        headers = exc.headers if isinstance(exc, StarletteHTTPException) else None
        return JSONResponse(
            status_code=normalized.status_code,
            content=normalized.envelope.to_content(),
            headers=headers,
        )


class TerminalErrorMiddleware(BaseHTTPMiddleware):
    """Last-chance stage turning any exception from route handlers into the envelope."""

    def __init__(self, app: Any, normalizer: ErrorNormalizer) -> None:
        super().__init__(app)
        self._normalizer = normalizer

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return self._normalizer.handle(request, exc)


def async_handler(fn: Callable[..., Awaitable[T] | T]) -> Callable[..., Awaitable[T]]:
    """Wrap a sync or async handler so every failure reaches the terminal error stage.

    Sync callables run in the threadpool, as FastAPI would run them. Awaitable
    results are awaited inside the wrapper; exceptions propagate unchanged.
    The wrapped signature is preserved for dependency injection.
    """

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        if inspect.iscoroutinefunction(fn):
            result = fn(*args, **kwargs)
        else:
            result = await run_in_threadpool(fn, *args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    return wrapper


def route_not_found_response(request: Request, available_endpoints: Mapping[str, str]) -> JSONResponse:
    """Build the 404 body for requests that matched no route."""
    content = ErrorEnvelope(message=f"Route {request.method} {request.url.path} not found").to_content()
    content["availableEndpoints"] = dict(available_endpoints)
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=content)


def register_error_handlers(
    app: FastAPI,
    normalizer: ErrorNormalizer,
    *,
    available_endpoints: Mapping[str, str] | None = None,
) -> None:
    """Attach the normalizer to a FastAPI app instance.

    Must run before other middleware is added so the terminal stage sits
    innermost, directly around the routing layer.
    """

    async def normalized_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        return normalizer.handle(request, exc)

    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # The router only records an endpoint in the scope once a route matched.
        if exc.status_code == status.HTTP_404_NOT_FOUND and "endpoint" not in request.scope:
            logger.info("Route not found: %s %s", request.method, request.url.path)
            return route_not_found_response(request, available_endpoints or {})
        return normalizer.handle(request, exc)

    app.state.error_normalizer = normalizer
    app.add_exception_handler(RequestValidationError, normalized_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_middleware(TerminalErrorMiddleware, normalizer=normalizer)
