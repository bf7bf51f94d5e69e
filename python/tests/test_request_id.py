"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures and in error bodies
"""

from uuid import UUID

import pytest

from precious.middleware.request_id import resolve_request_id
from tests.helpers import auth_headers, create_test_user


@pytest.fixture
def headers(token_service, session_factory):
    user = create_test_user(session_factory)
    return auth_headers(token_service, user.id)


class TestRequestIdMiddleware:
    def test_request_id_generated_when_missing(self, client, headers):
        response = client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_request_id_preserved_when_valid(self, client, headers):
        response = client.get(
            "/api/v1/auth/me", headers={**headers, "X-Request-ID": "ios.abc_def-123"}
        )

        assert response.headers["X-Request-ID"] == "ios.abc_def-123"

    def test_request_id_uuid_normalized_to_lowercase(self, client):
        response = client.get(
            "/health", headers={"X-Request-ID": "550E8400-E29B-41D4-A716-446655440000"}
        )

        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    def test_request_id_present_on_auth_failure(self, client):
        response = client.get("/api/v1/auth/me", headers={"X-Request-ID": "req-401"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "req-401"
        assert response.json()["error"]["request_id"] == "req-401"

    def test_error_response_includes_request_id_in_body(self, client):
        response = client.post("/api/v1/auth/google", json={"id_token": "forged"})

        assert response.status_code == 401
        assert response.json()["error"]["request_id"] == response.headers["X-Request-ID"]


class TestResolveRequestId:
    @pytest.mark.parametrize("incoming", [None, "", "bad id with spaces", "a" * 200, "x/y"])
    def test_invalid_ids_are_replaced_with_uuid(self, incoming):
        resolved = resolve_request_id(incoming)

        assert resolved != incoming
        UUID(resolved)

    def test_dotted_id_is_kept(self):
        assert resolve_request_id("request.id.with.dots") == "request.id.with.dots"
