"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from precious.api.routes.auth import router as auth_router
from precious.api.routes.health import router as health_router
from precious.api.routes.user import router as user_router

API_PREFIX = "/api/v1"


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        APIRouter with /health at the root and everything else under /api/v1.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(auth_router, prefix=API_PREFIX, tags=["auth"])
    api_router.include_router(user_router, prefix=API_PREFIX, tags=["user"])
    return api_router


__all__ = ["API_PREFIX", "create_api_router"]
