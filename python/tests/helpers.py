"""Test helpers for authentication and common test operations.

Provides:
- User creation straight through the user directory service
- Bearer header generation from the session token service
"""

from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from precious.auth.tokens import SessionTokenService
from precious.db.models import ToneVariant, User
from precious.services import users as users_service

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-000"


def create_test_user(
    session_factory: sessionmaker[Session],
    *,
    email: str = "alice@example.com",
    display_name: str = "Alice",
    gender: ToneVariant | None = None,
    apple_id: str | None = None,
    google_id: str | None = None,
    push_token: str | None = None,
    push_enabled: bool = True,
) -> User:
    """Create a committed user in its own session and return it (detached)."""
    with session_factory() as db:
        user = users_service.create_user(
            db,
            email=email,
            display_name=display_name,
            gender=gender,
            apple_id=apple_id,
            google_id=google_id,
        )
        if push_token is not None or not push_enabled:
            user = users_service.update_user(
                db, user.id, push_token=push_token, push_enabled=push_enabled
            )
        return user


def load_user(session_factory: sessionmaker[Session], user_id: UUID) -> User | None:
    """Read a user back through a fresh session."""
    with session_factory() as db:
        return users_service.get_user(db, user_id)


def auth_headers(
    token_service: SessionTokenService, user_id: UUID, email: str | None = None
) -> dict[str, str]:
    """Generate Authorization headers carrying a fresh access token."""
    pair = token_service.mint_token_pair(user_id, email)
    return {"Authorization": f"Bearer {pair.access_token}"}
