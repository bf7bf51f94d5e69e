"""Tests for error handling and response envelopes.

Verifies:
- Error envelope shape is correct
- Every error code maps to correct HTTP status
- Unknown exceptions return E_INTERNAL with 500
- Malformed JSON returns E_INVALID_REQUEST
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from precious.errors import (
    ERROR_CODE_TO_STATUS,
    ApiError,
    ApiErrorCode,
    InvalidRequestError,
    NotFoundError,
    UnauthenticatedError,
)
from precious.responses import (
    error_response,
    success_response,
    unhandled_exception_handler,
)


class TestErrorResponse:
    """Tests for error response envelope format."""

    def test_error_response_has_correct_shape(self):
        response = error_response(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

        assert response == {"error": {"code": "E_USER_NOT_FOUND", "message": "User not found"}}

    def test_explicit_request_id_is_included(self):
        response = error_response(ApiErrorCode.E_INTERNAL, "boom", request_id="req-1")

        assert response["error"]["request_id"] == "req-1"


class TestSuccessResponse:
    def test_success_response_has_data_key(self):
        assert success_response({"success": True}) == {"data": {"success": True}}

    def test_success_response_with_none(self):
        assert success_response(None) == {"data": None}


class TestErrorCodeToStatus:
    """Tests for error code to HTTP status mapping."""

    def test_all_error_codes_have_status_mapping(self):
        for code in ApiErrorCode:
            assert code in ERROR_CODE_TO_STATUS, f"Missing status mapping for {code}"

    @pytest.mark.parametrize(
        "code,expected_status",
        [
            (ApiErrorCode.E_UNAUTHENTICATED, 401),
            (ApiErrorCode.E_INVALID_IDENTITY_TOKEN, 401),
            (ApiErrorCode.E_INVALID_REFRESH_TOKEN, 401),
            (ApiErrorCode.E_FORBIDDEN, 403),
            (ApiErrorCode.E_NOT_FOUND, 404),
            (ApiErrorCode.E_USER_NOT_FOUND, 404),
            (ApiErrorCode.E_INVALID_REQUEST, 400),
            (ApiErrorCode.E_NO_PUSH_TOKEN, 400),
            (ApiErrorCode.E_IDENTITY_CONFLICT, 409),
            (ApiErrorCode.E_AUTH_UNAVAILABLE, 503),
            (ApiErrorCode.E_INTERNAL, 500),
        ],
    )
    def test_error_code_maps_to_correct_status(self, code: ApiErrorCode, expected_status: int):
        assert ERROR_CODE_TO_STATUS[code] == expected_status


class TestApiErrorClass:
    def test_api_error_derives_status_code(self):
        error = ApiError(ApiErrorCode.E_NO_PUSH_TOKEN, "No push token registered")

        assert error.message == "No push token registered"
        assert error.status_code == 400

    def test_subclass_defaults(self):
        assert NotFoundError().status_code == 404
        assert InvalidRequestError().code == ApiErrorCode.E_INVALID_REQUEST
        assert UnauthenticatedError().status_code == 401


class TestRequestErrors:
    def test_malformed_json_returns_400(self, client: TestClient):
        response = client.post(
            "/api/v1/auth/google",
            content="{invalid json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_unknown_route_uses_error_envelope(self, client: TestClient):
        response = client.get("/api/v1/nope")

        # Auth runs before routing, so an anonymous miss is a 401
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_wrong_method_on_public_route(self, client: TestClient):
        response = client.get("/api/v1/auth/logout")

        assert response.status_code == 405
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"


class TestUnhandledExceptionHandling:
    def test_unhandled_exception_returns_500_without_details(self):
        test_app = FastAPI()

        @test_app.get("/crash")
        def crash_endpoint():
            raise RuntimeError("SECRET_INTERNAL_DETAIL")

        test_app.add_exception_handler(Exception, unhandled_exception_handler)

        client = TestClient(test_app, raise_server_exceptions=False)
        response = client.get("/crash")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["code"] == "E_INTERNAL"
        assert "SECRET_INTERNAL_DETAIL" not in response.text
