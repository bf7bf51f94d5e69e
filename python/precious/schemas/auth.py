"""Sign-in and session Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AppleNameIn",
    "AppleUserIn",
    "AppleSignInRequest",
    "GoogleSignInRequest",
    "RefreshRequest",
    "TokenPairOut",
    "SignedInUserOut",
    "SignInOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class AppleNameIn(BaseModel):
    """Name parts the iOS client receives on first Apple authorization."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")


class AppleUserIn(BaseModel):
    email: str | None = None
    name: AppleNameIn | None = None


class AppleSignInRequest(BaseModel):
    """Request body for Sign in with Apple."""

    identity_token: str = Field(..., min_length=1)
    user: AppleUserIn | None = None


class GoogleSignInRequest(BaseModel):
    """Request body for Google Sign-In."""

    id_token: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# =============================================================================
# Response Schemas
# =============================================================================


class TokenPairOut(BaseModel):
    access_token: str
    refresh_token: str


class SignedInUserOut(BaseModel):
    id: UUID
    email: str
    display_name: str
    is_new_user: bool


class SignInOut(TokenPairOut):
    """Session tokens plus the signed-in user."""

    user: SignedInUserOut
