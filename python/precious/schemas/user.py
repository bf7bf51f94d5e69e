"""User profile and device Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from precious.db.models import ToneVariant, User

__all__ = [
    "UpdateProfileRequest",
    "RegisterDeviceRequest",
    "UserProfileOut",
    "SuccessOut",
    "PushTestOut",
]


class UpdateProfileRequest(BaseModel):
    """Request body for updating the viewer's profile. Omitted fields are unchanged."""

    display_name: str | None = Field(
        default=None, min_length=1, max_length=100, description="Display name (1-100 chars)"
    )
    gender: ToneVariant | None = Field(default=None, description="Tone variant for messages")


class RegisterDeviceRequest(BaseModel):
    """Request body for registering the device push token."""

    push_token: str = Field(..., min_length=1, description="FCM registration token")
    push_enabled: bool = True


class UserProfileOut(BaseModel):
    """Profile returned by /auth/me and PUT /me."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str
    gender: ToneVariant
    avatar_url: str | None
    push_enabled: bool

    @classmethod
    def from_user(cls, user: User) -> "UserProfileOut":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            gender=user.tone_variant,
            avatar_url=user.avatar_url,
            push_enabled=user.push_enabled,
        )


class SuccessOut(BaseModel):
    success: bool = True


class PushTestOut(BaseModel):
    """Outcome of an on-demand test notification."""

    success: bool
    message: str
