"""Authentication module.

This module provides:
- Identity token verification for Apple and Google sign-in
- Session access/refresh tokens
- Auth middleware for FastAPI with the viewer identity on request state
"""

from precious.auth.identity import (
    IdentityClaims,
    IdentityVerifier,
    JwksIdentityVerifier,
    apple_verifier,
    google_verifier,
)
from precious.auth.middleware import AuthMiddleware, Viewer, get_viewer
from precious.auth.tokens import SessionClaims, SessionTokenService, TokenPair

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "IdentityClaims",
    "IdentityVerifier",
    "JwksIdentityVerifier",
    "apple_verifier",
    "google_verifier",
    "SessionClaims",
    "SessionTokenService",
    "TokenPair",
]
