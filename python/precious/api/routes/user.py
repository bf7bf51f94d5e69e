"""Profile, device and test-push routes.

All routes require an access token. The viewer's user row is loaded on
each request; a token whose account no longer exists gets 404.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from precious.api.deps import get_db, get_dispatch_job
from precious.auth.middleware import Viewer, get_viewer
from precious.errors import ApiErrorCode, InvalidRequestError
from precious.responses import success_response
from precious.schemas.user import (
    PushTestOut,
    RegisterDeviceRequest,
    SuccessOut,
    UpdateProfileRequest,
    UserProfileOut,
)
from precious.services import users as users_service
from precious.services.dispatch import DispatchJob

router = APIRouter()


@router.put("/me")
def update_me(
    body: UpdateProfileRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Update display name and/or tone variant."""
    users_service.require_user(db, viewer.user_id)
    user = users_service.update_user(
        db,
        viewer.user_id,
        display_name=body.display_name,
        gender=body.gender,
    )
    return success_response(UserProfileOut.from_user(user).model_dump(mode="json"))


@router.post("/device")
def register_device(
    body: RegisterDeviceRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Store the device push token used by scheduled notifications."""
    users_service.require_user(db, viewer.user_id)
    users_service.register_device(
        db, viewer.user_id, body.push_token, push_enabled=body.push_enabled
    )
    return success_response(SuccessOut().model_dump())


@router.post("/push/test")
def send_test_push(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    dispatch_job: Annotated[DispatchJob, Depends(get_dispatch_job)],
) -> dict:
    """Send one personalized message to the viewer's device right now."""
    user = users_service.require_user(db, viewer.user_id)
    if not user.push_token:
        raise InvalidRequestError(ApiErrorCode.E_NO_PUSH_TOKEN, "No push token registered")

    outcome = dispatch_job.send_to_user(user)
    out = PushTestOut(success=outcome.sent, message=outcome.text)
    return success_response(out.model_dump())
