"""Session tokens: mint and verify the app's own access/refresh JWTs.

- HS256 signed with JWT_SECRET
- Claims: sub=user_id, email, typ=access|refresh, iat, exp
- Access tokens live ACCESS_TOKEN_TTL_S (15 min), refresh tokens
  REFRESH_TOKEN_TTL_S (30 days)
- typ is checked on verify so a refresh token never authenticates a request
  and an access token never mints a new pair
- Stateless: logout does not revoke anything server-side
"""

import time
from dataclasses import dataclass
from uuid import UUID

import jwt

from precious.config import Settings
from precious.errors import ApiError, ApiErrorCode
from precious.logging import get_logger

logger = get_logger(__name__)

SESSION_TOKEN_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class SessionClaims:
    user_id: UUID
    email: str | None
    token_type: str


class SessionTokenService:
    """Mints and verifies session JWTs."""

    def __init__(
        self,
        secret: str,
        access_ttl_s: int = 15 * 60,
        refresh_ttl_s: int = 30 * 24 * 3600,
    ):
        self._secret = secret
        self.access_ttl_s = access_ttl_s
        self.refresh_ttl_s = refresh_ttl_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionTokenService":
        return cls(
            secret=settings.effective_jwt_secret,
            access_ttl_s=settings.access_token_ttl_s,
            refresh_ttl_s=settings.refresh_token_ttl_s,
        )

    def mint_token_pair(self, user_id: UUID, email: str | None) -> TokenPair:
        now = int(time.time())
        return TokenPair(
            access_token=self._mint(user_id, email, ACCESS_TOKEN_TYPE, now, self.access_ttl_s),
            refresh_token=self._mint(user_id, email, REFRESH_TOKEN_TYPE, now, self.refresh_ttl_s),
        )

    def _mint(self, user_id: UUID, email: str | None, token_type: str, now: int, ttl_s: int) -> str:
        payload = {
            "sub": str(user_id),
            "email": email,
            "typ": token_type,
            "iat": now,
            "exp": now + ttl_s,
        }
        return jwt.encode(payload, self._secret, algorithm=SESSION_TOKEN_ALGORITHM)

    def verify_access(self, token: str) -> SessionClaims:
        """Verify an access token.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or not an access token.
        """
        return self._verify(token, ACCESS_TOKEN_TYPE, ApiErrorCode.E_UNAUTHENTICATED)

    def verify_refresh(self, token: str) -> SessionClaims:
        """Verify a refresh token.

        Raises:
            ApiError(E_INVALID_REFRESH_TOKEN): Token is invalid, expired, or not a refresh token.
        """
        return self._verify(token, REFRESH_TOKEN_TYPE, ApiErrorCode.E_INVALID_REFRESH_TOKEN)

    def _verify(self, token: str, expected_type: str, error_code: ApiErrorCode) -> SessionClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[SESSION_TOKEN_ALGORITHM],
                options={"require": ["exp", "iat", "sub", "typ"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("session_token_rejected", reason="expired", expected_type=expected_type)
            raise ApiError(error_code, "Token expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("session_token_rejected", reason="invalid", error=str(e))
            raise ApiError(error_code, "Invalid token") from e

        if payload.get("typ") != expected_type:
            logger.warning(
                "session_token_rejected",
                reason="wrong_type",
                expected_type=expected_type,
                actual_type=payload.get("typ"),
            )
            raise ApiError(error_code, "Invalid token type")

        try:
            user_id = UUID(payload["sub"])
        except (ValueError, TypeError) as e:
            raise ApiError(error_code, "Invalid token: sub is not a valid UUID") from e

        return SessionClaims(user_id=user_id, email=payload.get("email"), token_type=expected_type)
