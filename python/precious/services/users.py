"""User directory service layer.

Owns every read and write of the `users` table:
- Lookups by id, email, and linked provider subject
- Creation on first sign-in, provider linking, profile and device updates
- Hard deletion on account deletion
- The push-eligible query consumed by the dispatch job

Every operation is a short single-row read or write committed on its own;
nothing here holds a transaction open across calls.

Invariants:
- email, apple_id, google_id are unique (enforced by the database; a
  violation surfaces as ApiError(E_IDENTITY_CONFLICT))
- push-eligible means push_enabled AND push_token is non-null and non-empty
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from precious.db.models import DEFAULT_TONE_VARIANT, IdentityProvider, ToneVariant, User
from precious.db.session import transaction
from precious.errors import ApiError, ApiErrorCode, NotFoundError
from precious.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PushRecipient:
    """Projection of a push-eligible user for one dispatch pass."""

    id: UUID
    display_name: str
    gender: str
    push_token: str

    @property
    def tone_variant(self) -> ToneVariant:
        return ToneVariant.coerce(self.gender)


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def require_user(db: Session, user_id: UUID) -> User:
    """Load a user or raise NotFoundError(E_USER_NOT_FOUND).

    An access token can outlive its account (deleted elsewhere), so
    authenticated routes load the row through this.
    """
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email)).first()


def find_user_by_provider(db: Session, provider: IdentityProvider, subject: str) -> User | None:
    """Find the user linked to a provider subject (Apple or Google `sub`)."""
    column = getattr(User, provider.column)
    return db.scalars(select(User).where(column == subject)).first()


def create_user(
    db: Session,
    *,
    email: str,
    display_name: str,
    gender: ToneVariant | None = None,
    apple_id: str | None = None,
    google_id: str | None = None,
    avatar_url: str | None = None,
) -> User:
    """Insert a new user.

    Args:
        db: Database session.
        email: Unique email address.
        display_name: Name used for message personalization.
        gender: Tone variant (defaults to female).
        apple_id: Apple subject to link at creation.
        google_id: Google subject to link at creation.
        avatar_url: Profile picture from the identity provider.

    Returns:
        The persisted user.

    Raises:
        ApiError(E_IDENTITY_CONFLICT): email or a provider subject is already taken.
    """
    user = User(
        email=email,
        display_name=display_name,
        gender=(gender or DEFAULT_TONE_VARIANT).value,
        apple_id=apple_id or None,
        google_id=google_id or None,
        avatar_url=avatar_url or None,
        push_enabled=True,
    )
    try:
        with transaction(db):
            db.add(user)
            db.flush()
    except IntegrityError as e:
        logger.warning("user_create_conflict", email_domain=email.rpartition("@")[2])
        raise ApiError(
            ApiErrorCode.E_IDENTITY_CONFLICT, "A user with this identity already exists"
        ) from e

    logger.info(
        "user_created",
        user_id=str(user.id),
        linked_apple=bool(apple_id),
        linked_google=bool(google_id),
    )
    return user


def update_user(
    db: Session,
    user_id: UUID,
    *,
    display_name: str | None = None,
    gender: ToneVariant | None = None,
    push_token: str | None = None,
    push_enabled: bool | None = None,
) -> User | None:
    """Apply a partial update; fields left as None are untouched.

    Returns:
        The updated user, or None if the user does not exist.
    """
    user = db.get(User, user_id)
    if user is None:
        return None

    changes: list[str] = []
    if display_name is not None:
        user.display_name = display_name
        changes.append("display_name")
    if gender is not None:
        user.gender = ToneVariant(gender).value
        changes.append("gender")
    if push_token is not None:
        user.push_token = push_token
        changes.append("push_token")
    if push_enabled is not None:
        user.push_enabled = push_enabled
        changes.append("push_enabled")

    if not changes:
        return user

    with transaction(db):
        db.flush()

    logger.info("user_updated", user_id=str(user_id), fields=changes)
    return user


def register_device(
    db: Session, user_id: UUID, push_token: str, push_enabled: bool = True
) -> User | None:
    """Store the device push token and push preference for a user."""
    return update_user(db, user_id, push_token=push_token, push_enabled=push_enabled)


def link_identity(
    db: Session, user_id: UUID, provider: IdentityProvider, subject: str
) -> User | None:
    """Link an additional identity provider subject to an existing account.

    Raises:
        ApiError(E_IDENTITY_CONFLICT): The subject is linked to another user.
    """
    user = db.get(User, user_id)
    if user is None:
        return None

    setattr(user, provider.column, subject)
    try:
        with transaction(db):
            db.flush()
    except IntegrityError as e:
        raise ApiError(
            ApiErrorCode.E_IDENTITY_CONFLICT,
            f"This {provider.value} account is linked to another user",
        ) from e

    logger.info("user_identity_linked", user_id=str(user_id), provider=provider.value)
    return user


def delete_user(db: Session, user_id: UUID) -> bool:
    """Hard-delete a user. Returns False if no such user existed."""
    user = db.get(User, user_id)
    if user is None:
        return False

    with transaction(db):
        db.delete(user)

    logger.info("user_deleted", user_id=str(user_id))
    return True


def list_push_eligible_users(db: Session) -> list[PushRecipient]:
    """Return every user with push enabled and a non-empty device token.

    Order is not significant.
    """
    stmt = select(User.id, User.display_name, User.gender, User.push_token).where(
        User.push_enabled.is_(True),
        User.push_token.is_not(None),
        User.push_token != "",
    )
    return [
        PushRecipient(
            id=row.id,
            display_name=row.display_name,
            gender=row.gender,
            push_token=row.push_token,
        )
        for row in db.execute(stmt)
    ]
