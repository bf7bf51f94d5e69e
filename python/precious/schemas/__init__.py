"""Pydantic schemas for request and response models."""

from precious.schemas.auth import (
    AppleSignInRequest,
    GoogleSignInRequest,
    RefreshRequest,
    SignInOut,
    TokenPairOut,
)
from precious.schemas.user import (
    PushTestOut,
    RegisterDeviceRequest,
    SuccessOut,
    UpdateProfileRequest,
    UserProfileOut,
)

__all__ = [
    "AppleSignInRequest",
    "GoogleSignInRequest",
    "RefreshRequest",
    "SignInOut",
    "TokenPairOut",
    "RegisterDeviceRequest",
    "SuccessOut",
    "PushTestOut",
    "UpdateProfileRequest",
    "UserProfileOut",
]
