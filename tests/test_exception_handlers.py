"""Tests for global exception handlers.

Validates that domain errors map to the right status codes and that every
error response shares the same envelope without leaking internals.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quotaguard.core.errors import AppError, ConfigurationAppError, ErrorDetails, StoreUnavailableError
from quotaguard.core.exception_handlers import (
    error_response,
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreUnavailableError(
                code="store_unavailable",
                message="Rate limit store get failed",
                details={"operation": "get", "backend": "redis"},
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        data = response.json()
        assert data["error"]["code"] == "store_unavailable"
        assert data["error"]["details"] == {"operation": "get", "backend": "redis"}
        assert "request_id" in data["error"]

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationAppError(code="invalid_rate_limit_total", message="total must be >= 1")

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "invalid_rate_limit_total"
        assert "details" not in response.json()["error"]

    def test_base_app_error_defaults_to_400(self):
        assert status_code_for(AppError(code="x", message="y")) == 400

    def test_error_details_carry_store_context_only(self):
        assert ErrorDetails.__optional_keys__ == frozenset({"operation", "backend"})
        assert ErrorDetails.__required_keys__ == frozenset()


class TestErrorResponse:
    def test_envelope_and_headers(self):
        response = error_response(429, "rate_limit_exceeded", "Rate limit exceeded", headers={"Retry-After": "3"})

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "3"
        assert data == {
            "error": {
                "code": "rate_limit_exceeded",
                "message": "Rate limit exceeded",
                "request_id": None,
            }
        }


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_never_leaks_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("redis://:hunter2@cache:6379 refused")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in response_text
        assert "RuntimeError" not in response_text
        assert "Traceback" not in response_text

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()
        setup_exception_handlers(app)
        setup_exception_handlers(app)
        assert AppError in app.exception_handlers
