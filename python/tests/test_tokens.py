"""Tests for session token minting and verification."""

import time
from uuid import uuid4

import jwt
import pytest

from precious.auth.tokens import SESSION_TOKEN_ALGORITHM, SessionTokenService
from precious.config import Settings
from precious.errors import ApiError, ApiErrorCode
from tests.helpers import TEST_JWT_SECRET


def _forge(payload: dict, secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode(payload, secret, algorithm=SESSION_TOKEN_ALGORITHM)


class TestMintTokenPair:
    def test_pair_round_trips_claims(self, token_service):
        user_id = uuid4()

        pair = token_service.mint_token_pair(user_id, "alice@example.com")

        access = token_service.verify_access(pair.access_token)
        refresh = token_service.verify_refresh(pair.refresh_token)
        assert access.user_id == user_id == refresh.user_id
        assert access.email == "alice@example.com"
        assert access.token_type == "access"
        assert refresh.token_type == "refresh"

    def test_expiry_follows_configured_lifetimes(self):
        service = SessionTokenService(secret=TEST_JWT_SECRET, access_ttl_s=60, refresh_ttl_s=600)

        pair = service.mint_token_pair(uuid4(), None)

        access = jwt.decode(pair.access_token, TEST_JWT_SECRET, algorithms=["HS256"])
        refresh = jwt.decode(pair.refresh_token, TEST_JWT_SECRET, algorithms=["HS256"])
        assert access["exp"] - access["iat"] == 60
        assert refresh["exp"] - refresh["iat"] == 600

    def test_from_settings(self):
        settings = Settings(
            DATABASE_URL="sqlite://",
            JWT_SECRET="from-settings-secret",
            ACCESS_TOKEN_TTL_S=120,
        )

        service = SessionTokenService.from_settings(settings)

        assert service.access_ttl_s == 120
        pair = service.mint_token_pair(uuid4(), None)
        jwt.decode(pair.access_token, "from-settings-secret", algorithms=["HS256"])


class TestVerify:
    def test_refresh_token_does_not_authenticate_requests(self, token_service):
        pair = token_service.mint_token_pair(uuid4(), None)

        with pytest.raises(ApiError) as exc_info:
            token_service.verify_access(pair.refresh_token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert exc_info.value.message == "Invalid token type"

    def test_access_token_cannot_refresh(self, token_service):
        pair = token_service.mint_token_pair(uuid4(), None)

        with pytest.raises(ApiError) as exc_info:
            token_service.verify_refresh(pair.access_token)

        assert exc_info.value.code == ApiErrorCode.E_INVALID_REFRESH_TOKEN

    def test_expired_access_token(self, token_service):
        now = int(time.time())
        token = _forge(
            {"sub": str(uuid4()), "typ": "access", "iat": now - 1000, "exp": now - 100}
        )

        with pytest.raises(ApiError) as exc_info:
            token_service.verify_access(token)

        assert exc_info.value.message == "Token expired"
        assert exc_info.value.status_code == 401

    def test_wrong_secret(self, token_service):
        now = int(time.time())
        token = _forge(
            {"sub": str(uuid4()), "typ": "access", "iat": now, "exp": now + 60},
            secret="some-other-secret-of-sufficient-len",
        )

        with pytest.raises(ApiError) as exc_info:
            token_service.verify_access(token)

        assert exc_info.value.message == "Invalid token"

    def test_garbage_token(self, token_service):
        with pytest.raises(ApiError) as exc_info:
            token_service.verify_refresh("definitely.not.ajwt")

        assert exc_info.value.code == ApiErrorCode.E_INVALID_REFRESH_TOKEN

    def test_missing_type_claim(self, token_service):
        now = int(time.time())
        token = _forge({"sub": str(uuid4()), "iat": now, "exp": now + 60})

        with pytest.raises(ApiError):
            token_service.verify_access(token)

    def test_non_uuid_subject(self, token_service):
        now = int(time.time())
        token = _forge({"sub": "not-a-uuid", "typ": "access", "iat": now, "exp": now + 60})

        with pytest.raises(ApiError) as exc_info:
            token_service.verify_access(token)

        assert exc_info.value.code == ApiErrorCode.E_UNAUTHENTICATED
