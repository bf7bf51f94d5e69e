"""Sign-in and session routes.

Routes are transport-only:
- Verify the provider token with the injected verifier
- Call exactly one service function
- Return success(...) or raise ApiError

/auth/apple, /auth/google, /auth/refresh and /auth/logout are public;
/auth/me and /auth/account require an access token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from precious.api.deps import get_apple_verifier, get_db, get_google_verifier, get_token_service
from precious.auth.identity import IdentityVerifier
from precious.auth.middleware import Viewer, get_viewer
from precious.auth.tokens import SessionTokenService
from precious.errors import ApiError, ApiErrorCode, NotFoundError
from precious.responses import success_response
from precious.schemas.auth import (
    AppleSignInRequest,
    GoogleSignInRequest,
    RefreshRequest,
    SignedInUserOut,
    SignInOut,
    TokenPairOut,
)
from precious.schemas.user import SuccessOut, UserProfileOut
from precious.services import sign_in as sign_in_service
from precious.services import users as users_service
from precious.services.sign_in import AppleUserInfo, SignInResult

router = APIRouter()


def _sign_in_response(result: SignInResult, token_service: SessionTokenService) -> dict:
    pair = token_service.mint_token_pair(result.user.id, result.user.email)
    body = SignInOut(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        user=SignedInUserOut(
            id=result.user.id,
            email=result.user.email,
            display_name=result.user.display_name,
            is_new_user=result.is_new_user,
        ),
    )
    return success_response(body.model_dump(mode="json"))


@router.post("/auth/apple")
def sign_in_apple(
    body: AppleSignInRequest,
    db: Annotated[Session, Depends(get_db)],
    verifier: Annotated[IdentityVerifier, Depends(get_apple_verifier)],
    token_service: Annotated[SessionTokenService, Depends(get_token_service)],
) -> dict:
    """Sign in with an Apple identity token, creating the account on first use."""
    claims = verifier.verify(body.identity_token)

    user_info = None
    if body.user is not None:
        name = body.user.name
        user_info = AppleUserInfo(
            email=body.user.email,
            first_name=name.first_name if name else None,
            last_name=name.last_name if name else None,
        )

    result = sign_in_service.sign_in_with_apple(db, claims, user_info)
    return _sign_in_response(result, token_service)


@router.post("/auth/google")
def sign_in_google(
    body: GoogleSignInRequest,
    db: Annotated[Session, Depends(get_db)],
    verifier: Annotated[IdentityVerifier, Depends(get_google_verifier)],
    token_service: Annotated[SessionTokenService, Depends(get_token_service)],
) -> dict:
    """Sign in with a Google ID token, creating the account on first use."""
    claims = verifier.verify(body.id_token)
    result = sign_in_service.sign_in_with_google(db, claims)
    return _sign_in_response(result, token_service)


@router.post("/auth/refresh")
def refresh_session(
    body: RefreshRequest,
    db: Annotated[Session, Depends(get_db)],
    token_service: Annotated[SessionTokenService, Depends(get_token_service)],
) -> dict:
    """Exchange a refresh token for a new token pair."""
    claims = token_service.verify_refresh(body.refresh_token)

    user = users_service.get_user(db, claims.user_id)
    if user is None:
        raise ApiError(ApiErrorCode.E_INVALID_REFRESH_TOKEN, "User not found")

    pair = token_service.mint_token_pair(user.id, user.email)
    out = TokenPairOut(access_token=pair.access_token, refresh_token=pair.refresh_token)
    return success_response(out.model_dump())


@router.post("/auth/logout")
def logout() -> dict:
    """Session tokens are stateless; the client discards them."""
    return success_response(SuccessOut().model_dump())


@router.get("/auth/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get the authenticated user's profile."""
    user = users_service.require_user(db, viewer.user_id)
    return success_response(UserProfileOut.from_user(user).model_dump(mode="json"))


@router.delete("/auth/account")
def delete_account(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Permanently delete the authenticated user's account."""
    if not users_service.delete_user(db, viewer.user_id):
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return success_response(SuccessOut().model_dump())
