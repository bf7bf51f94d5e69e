"""Sign-in with an external identity provider.

Both providers resolve a verified identity to a user the same way:
1. A user already linked to the provider subject → that user
2. Else a user with the token's email, if the provider verified it → link
   the subject to that user
3. Else create a new user linked to the subject

Apple only shares the user's name (and sometimes email) with the app on the
very first authorization, so the client forwards them in the request body.
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from precious.auth.identity import IdentityClaims
from precious.db.models import IdentityProvider, User
from precious.errors import ApiError, ApiErrorCode
from precious.logging import get_logger
from precious.services import users as users_service

logger = get_logger(__name__)

APPLE_PRIVATE_RELAY_DOMAIN = "privaterelay.appleid.com"
FALLBACK_DISPLAY_NAME = "User"


@dataclass(frozen=True)
class AppleUserInfo:
    """Name and email the iOS client received on first Apple authorization."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True)
class SignInResult:
    user: User
    is_new_user: bool


def sign_in_with_apple(
    db: Session, claims: IdentityClaims, user_info: AppleUserInfo | None = None
) -> SignInResult:
    """Resolve a verified Apple identity to a user, creating one if needed."""
    existing = _find_or_link(db, IdentityProvider.apple, claims)
    if existing is not None:
        return SignInResult(user=existing, is_new_user=False)

    user_info = user_info or AppleUserInfo()
    email = claims.email or user_info.email or f"{claims.sub}@{APPLE_PRIVATE_RELAY_DOMAIN}"
    full_name = " ".join(part for part in (user_info.first_name, user_info.last_name) if part)
    display_name = user_info.first_name or full_name or _email_local_part(email)

    user = users_service.create_user(
        db,
        email=email,
        display_name=display_name,
        apple_id=claims.sub,
    )
    return SignInResult(user=user, is_new_user=True)


def sign_in_with_google(db: Session, claims: IdentityClaims) -> SignInResult:
    """Resolve a verified Google identity to a user, creating one if needed."""
    existing = _find_or_link(db, IdentityProvider.google, claims)
    if existing is not None:
        return SignInResult(user=existing, is_new_user=False)

    if not claims.email:
        raise ApiError(
            ApiErrorCode.E_INVALID_IDENTITY_TOKEN, "Google identity token has no email"
        )

    user = users_service.create_user(
        db,
        email=claims.email,
        display_name=claims.name or _email_local_part(claims.email),
        google_id=claims.sub,
        avatar_url=claims.picture,
    )
    return SignInResult(user=user, is_new_user=True)


def _find_or_link(db: Session, provider: IdentityProvider, claims: IdentityClaims) -> User | None:
    user = users_service.find_user_by_provider(db, provider, claims.sub)
    if user is not None:
        return user

    # An unverified email never claims an existing account
    if not claims.email or not claims.email_verified:
        return None

    user = users_service.find_user_by_email(db, claims.email)
    if user is None:
        return None

    logger.info("sign_in_linking_existing_user", user_id=str(user.id), provider=provider.value)
    return users_service.link_identity(db, user.id, provider, claims.sub)


def _email_local_part(email: str) -> str:
    return email.split("@")[0] or FALLBACK_DISPLAY_NAME
