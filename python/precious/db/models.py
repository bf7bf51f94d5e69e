"""SQLAlchemy ORM models for precious.

Defines the single `users` table using SQLAlchemy 2.x declarative patterns.
Column types are dialect-neutral so the same model runs on PostgreSQL in
deployment and on SQLite in the test suite.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Text, Uuid, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class ToneVariant(str, PyEnum):
    """Grammatical tone a user is addressed in.

    Controls which catalog messages are eligible for the user. Neutral
    messages are tone-agnostic and eligible for everyone.
    """

    female = "female"
    male = "male"
    neutral = "neutral"

    @classmethod
    def coerce(cls, value: "str | ToneVariant | None") -> "ToneVariant":
        """Map any stored or requested value onto a variant, defaulting to female."""
        if isinstance(value, ToneVariant):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.female


DEFAULT_TONE_VARIANT = ToneVariant.female


class IdentityProvider(str, PyEnum):
    """External sign-in providers a user can link. Value is the users column name."""

    apple = "apple"
    google = "google"

    @property
    def column(self) -> str:
        return f"{self.value}_id"


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """Registered app user.

    A user is linked to zero, one, or both identity providers. Email and each
    provider subject are globally unique. A user is push-eligible when
    push_enabled is true and push_token is a non-empty string.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    gender: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DEFAULT_TONE_VARIANT.value,
        server_default=text(f"'{DEFAULT_TONE_VARIANT.value}'"),
    )

    apple_id: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    google_id: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    push_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    push_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "gender IN ('female', 'male', 'neutral')",
            name="ck_users_gender",
        ),
        Index(
            "idx_users_push_eligible",
            "push_enabled",
            postgresql_where=text("push_token IS NOT NULL AND push_token <> ''"),
        ),
    )

    @property
    def tone_variant(self) -> ToneVariant:
        """Tone variant with unknown stored values treated as female."""
        return ToneVariant.coerce(self.gender)

    @property
    def is_push_eligible(self) -> bool:
        return bool(self.push_enabled and self.push_token)
