"""FastAPI dependencies for route handlers.

Collaborators are created once in create_app() and stored on app.state;
these accessors hand them to routes.
"""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from precious.auth.identity import IdentityVerifier
from precious.auth.tokens import SessionTokenService
from precious.services.dispatch import DispatchJob

__all__ = [
    "get_db",
    "get_token_service",
    "get_apple_verifier",
    "get_google_verifier",
    "get_dispatch_job",
]


def get_db(request: Request) -> Generator[Session, None, None]:
    """Request-scoped session from the app's session factory.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Annotated[Session, Depends(get_db)]):
            ...
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_token_service(request: Request) -> SessionTokenService:
    return request.app.state.token_service


def get_apple_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.apple_verifier


def get_google_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.google_verifier


def get_dispatch_job(request: Request) -> DispatchJob:
    """Get the shared dispatch job (also used by the scheduler)."""
    return request.app.state.dispatch_job
