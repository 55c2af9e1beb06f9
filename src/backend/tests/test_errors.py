"""Tests for the NexoraError hierarchy and global exception handlers.

Verifies that each error subclass produces the correct HTTP status code
and the expected response body shape:
  {"error": {"code": "...", "message": "...", "request_id": "..."}}
"""

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from nexora.errors import (
    ConflictError,
    MissingCredentialError,
    NexoraError,
    NotFoundError,
    PartialBatchFailure,
    TransportError,
    UnauthorizedError,
    ValidationError,
)
from nexora.main import nexora_error_handler, request_validation_handler
from nexora.middleware import RequestIDMiddleware


def _raising_route(factory):
    async def route():
        raise factory()

    return route


def make_test_app(*error_factories) -> FastAPI:
    """Build a minimal FastAPI app with one route per error factory."""
    test_app = FastAPI()
    test_app.add_middleware(RequestIDMiddleware)
    test_app.add_exception_handler(NexoraError, nexora_error_handler)
    test_app.add_exception_handler(RequestValidationError, request_validation_handler)

    for name, factory in error_factories:
        test_app.get(f"/raise/{name}")(_raising_route(factory))

    return test_app


ERROR_CASES = [
    ("not_found", lambda: NotFoundError("test message"), 404, "NOT_FOUND"),
    ("unauthorized", lambda: UnauthorizedError("test message"), 401, "UNAUTHORIZED"),
    ("conflict", lambda: ConflictError("test message"), 409, "CONFLICT"),
    ("validation", lambda: ValidationError("test message"), 400, "VALIDATION_ERROR"),
    ("missing_cred", lambda: MissingCredentialError("test message"), 400, "MISSING_CREDENTIAL"),
    ("transport", lambda: TransportError("test message", status=500), 502, "TRANSPORT_ERROR"),
]


class TestErrorHierarchy:
    @pytest.mark.parametrize("name,factory,expected_status,expected_code", ERROR_CASES)
    async def test_error_status_and_code(self, name, factory, expected_status, expected_code):
        app = make_test_app((name, factory))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get(f"/raise/{name}")

        assert response.status_code == expected_status
        body = response.json()
        assert body["error"]["code"] == expected_code
        assert body["error"]["message"] == "test message"
        assert "request_id" in body["error"]
        assert "x-request-id" in response.headers

    async def test_request_id_in_body_matches_header(self):
        app = make_test_app(("not_found", lambda: NotFoundError("x")))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/raise/not_found")

        assert response.json()["error"]["request_id"] == response.headers["x-request-id"]

    async def test_inbound_request_id_is_reused(self):
        app = make_test_app(("not_found", lambda: NotFoundError("x")))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/raise/not_found", headers={"X-Request-ID": "req-42"})

        assert response.headers["x-request-id"] == "req-42"
        assert response.json()["error"]["request_id"] == "req-42"

    async def test_body_validation_error_is_400(self):
        app = make_test_app()

        class Body(BaseModel):
            action: int

        @app.post("/echo")
        async def echo(body: Body):
            return body

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/echo", json={"action": "nope"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestErrorPayloads:
    def test_invalid_transition_message(self):
        from nexora.errors import InvalidTransitionError

        exc = InvalidTransitionError("running", "start")
        assert exc.status_code == 400
        assert exc.message == "Cannot start a server that is running"

    def test_transport_error_carries_status_and_body(self):
        exc = TransportError("boom", status=503, body="upstream")
        assert (exc.status, exc.body) == (503, "upstream")

    def test_partial_batch_failure_counts_items(self):
        exc = PartialBatchFailure(["a", "b"])
        assert exc.failures == ["a", "b"]
        assert "2 item(s)" in exc.message
