"""Unit tests for the terminal error stage wired into a FastAPI app."""

from __future__ import annotations

import asyncio
import inspect
import threading

from fastapi import FastAPI
from fastapi.testclient import TestClient
import jwt
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import APIError
from app.core.errors import ErrorNormalizer
from app.core.errors import NotFoundError
from app.core.errors import async_handler
from app.core.errors import register_error_handlers
from app.core.identifiers import parse_identifier
from app.db.errors import FieldIssue
from app.db.errors import ModelValidationError

AVAILABLE = {"root": "/", "health": "/health"}


def _build_client(*, debug: bool = False) -> TestClient:
    app = FastAPI()
    register_error_handlers(app, ErrorNormalizer(debug=debug), available_endpoints=AVAILABLE)

    @app.get("/query")
    def query(limit: int) -> dict[str, int]:
        return {"limit": limit}

    @app.get("/products/{product_id}")
    def product(product_id: str) -> dict[str, int]:
        return {"id": parse_identifier(product_id)}

    @app.get("/not-found")
    def not_found() -> None:
        raise NotFoundError(message="Product not found")

    @app.get("/typed")
    async def typed() -> None:
        raise APIError("Index is rebuilding", status_code=503)

    @app.get("/http")
    def http_error() -> None:
        raise StarletteHTTPException(status_code=404, detail="Category not found")

    @app.post("/products")
    async def create_product() -> None:
        raise IntegrityError("INSERT INTO products", {}, Exception("duplicate key value violates unique constraint"))

    @app.put("/products")
    def validate_product() -> None:
        raise ModelValidationError(
            [
                FieldIssue(field="name", message="name is required"),
                FieldIssue(field="price", message="price must be positive"),
            ]
        )

    @app.get("/token")
    async def token() -> None:
        raise jwt.ExpiredSignatureError("Signature has expired")

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("boom")

    @app.get("/wrapped")
    @async_handler
    async def wrapped() -> None:
        await asyncio.sleep(0)
        raise RuntimeError("rejected operation")

    return TestClient(app)


def test_request_validation_errors_are_normalized_to_envelope() -> None:
    response = _build_client().get("/query")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Validation failed"}


def test_cast_failures_name_the_field_and_value() -> None:
    response = _build_client().get("/products/abc")

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid id: abc"}


def test_valid_identifiers_pass_through() -> None:
    response = _build_client().get("/products/17")

    assert response.status_code == 200
    assert response.json() == {"id": 17}


def test_typed_failures_use_their_own_status() -> None:
    client = _build_client()

    not_found = client.get("/not-found")
    typed = client.get("/typed")

    assert not_found.status_code == 404
    assert not_found.json() == {"success": False, "message": "Product not found"}
    assert typed.status_code == 503
    assert typed.json() == {"success": False, "message": "Index is rebuilding"}


def test_http_exceptions_raised_by_handlers_are_wrapped() -> None:
    response = _build_client().get("/http")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Category not found"}


def test_unique_violation_returns_conflict() -> None:
    response = _build_client().post("/products")

    assert response.status_code == 409
    assert response.json() == {"success": False, "message": "Resource already exists"}


def test_model_validation_lists_field_errors_in_order() -> None:
    response = _build_client().put("/products")

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Validation error",
        "errors": [
            {"field": "name", "message": "name is required"},
            {"field": "price", "message": "price must be positive"},
        ],
    }


def test_expired_token_returns_unauthorized() -> None:
    response = _build_client().get("/token")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Token expired"}


def test_unhandled_exceptions_never_escape_the_request() -> None:
    response = _build_client().get("/boom")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "boom"}


def test_development_responses_include_name_and_stack() -> None:
    response = _build_client(debug=True).get("/boom")

    assert response.status_code == 500
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "boom"
    assert payload["error"]["name"] == "RuntimeError"
    assert "RuntimeError: boom" in payload["error"]["stack"]


def test_wrapped_async_handler_forwards_rejections() -> None:
    response = _build_client().get("/wrapped")

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "rejected operation"}


def test_wrapped_handlers_are_otherwise_transparent() -> None:
    def lookup(name: str) -> dict[str, str]:
        return {"name": name}

    def deferred() -> object:
        async def fetch() -> dict[str, bool]:
            return {"resolved": True}

        return fetch()

    assert asyncio.run(async_handler(lookup)("laptop")) == {"name": "laptop"}
    assert asyncio.run(async_handler(deferred)()) == {"resolved": True}


def test_wrapped_sync_handlers_run_off_the_event_loop() -> None:
    barrier = threading.Barrier(2, timeout=5)

    def blocking_lookup(sku: str) -> str:
        barrier.wait()
        return sku

    async def run_both() -> list[str]:
        wrapped = async_handler(blocking_lookup)
        return await asyncio.gather(wrapped("SKU-1"), wrapped("SKU-2"))

    assert asyncio.run(run_both()) == ["SKU-1", "SKU-2"]


def test_wrapped_handler_keeps_its_name() -> None:
    async def list_products() -> None:
        return None

    assert async_handler(list_products).__name__ == "list_products"
    assert inspect.iscoroutinefunction(async_handler(list_products))


def test_unmatched_routes_return_not_found_envelope() -> None:
    response = _build_client().delete("/nowhere")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "Route DELETE /nowhere not found",
        "availableEndpoints": AVAILABLE,
    }


def test_http_exception_headers_are_preserved() -> None:
    response = _build_client().post("/query")

    assert response.status_code == 405
    assert "GET" in response.headers["allow"]
    assert response.json() == {"success": False, "message": "Method Not Allowed"}
