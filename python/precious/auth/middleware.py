"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer access-token verification
- get_viewer: Dependency for accessing the authenticated viewer identity
"""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from precious.auth.tokens import SessionClaims
from precious.errors import ApiError, ApiErrorCode
from precious.logging import get_logger, set_user_context
from precious.responses import error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/api/v1/auth/apple",
    "/api/v1/auth/google",
    "/api/v1/auth/refresh",
    "/api/v1/auth/logout",
}


class AccessTokenVerifier(Protocol):
    def verify_access(self, token: str) -> SessionClaims: ...


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from the access token sub claim).
        email: Email carried in the access token, if any.
    """

    user_id: UUID
    email: str | None = None


class AuthMiddleware(BaseHTTPMiddleware):
    """Bearer access-token authentication.

    Order of checks:
    1. Skip if public path
    2. Extract and parse bearer token
    3. Verify it is a valid, unexpired access token
    4. Attach Viewer to request state

    The user row is not loaded here; routes that need it look it up and
    return 404 if the account was deleted after the token was issued.
    """

    def __init__(self, app: ASGIApp, verifier: AccessTokenVerifier):
        super().__init__(app)
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        if request.url.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        token, error_response_obj = self._extract_bearer_token(request)
        if error_response_obj:
            return error_response_obj

        try:
            claims = self.verifier.verify_access(token)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        request.state.viewer = Viewer(user_id=claims.user_id, email=claims.email)
        set_user_context(str(claims.user_id))

        return await call_next(request)

    def _extract_bearer_token(self, request: Request) -> tuple[str, JSONResponse | None]:
        """Extract bearer token from Authorization header.

        Returns:
            Tuple of (token, error_response). Token is empty string if error.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            logger.warning("auth_failure", reason="missing_header", request_path=request.url.path)
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Authentication required",
                401,
            )

        if not auth_header.lower().startswith("bearer "):
            logger.warning(
                "auth_failure", reason="invalid_header_format", request_path=request.url.path
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        token = auth_header[7:].strip()
        if not token:
            logger.warning(
                "auth_failure", reason="invalid_header_format", request_path=request.url.path
            )
            return "", self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED,
                "Invalid authorization header format",
                401,
            )

        return token, None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


# Type alias for dependency injection
ViewerDep = Depends(get_viewer)
