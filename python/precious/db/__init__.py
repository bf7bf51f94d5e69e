"""Database module for precious.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from precious.db.engine import create_db_engine, get_engine
from precious.db.models import DEFAULT_TONE_VARIANT, Base, IdentityProvider, ToneVariant, User
from precious.db.session import (
    create_session_factory,
    get_session_factory,
    session_scope,
    transaction,
)

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "session_scope",
    "transaction",
    # Models
    "Base",
    "IdentityProvider",
    "ToneVariant",
    "DEFAULT_TONE_VARIANT",
    "User",
]
