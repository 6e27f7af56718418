import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.core.deps import get_waitlist_service
from app.core.exceptions import ValidationError
from app.schemas.waitlist import (
    MessageResponse,
    SavePostRequest,
    VerifyEmailResponse,
    WaitlistSubmission,
    WaitlistSubmitResponse,
)
from app.services.waitlist_service import WaitlistService
from app.utils.rate_limiter import verify_email_limiter, waitlist_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["waitlist"])


@router.post(
    "/waitlist",
    response_model=WaitlistSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(waitlist_limiter)],
)
def submit_waitlist_entry(
    payload: WaitlistSubmission,
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Join the waitlist; a verification email is sent in the background."""
    result = service.submit(
        name=payload.name,
        email=payload.email,
        roles=payload.roles,
        wallet_address=payload.wallet_address,
        note=payload.note,
        x_handle=payload.x_handle,
    )
    return WaitlistSubmitResponse(
        success=True,
        message="Successfully joined the waitlist. Please check your email to verify your address.",
        id=result["id"],
    )


@router.get(
    "/verify-email/{token}",
    response_model=VerifyEmailResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_email_limiter)],
)
def verify_email(token: str, service: WaitlistService = Depends(get_waitlist_service)):
    result = service.verify_by_token(token)
    if result["already_verified"]:
        return VerifyEmailResponse(
            success=True,
            message="Email already verified",
            alreadyVerified=True,
            email=result["email"],
        )
    return VerifyEmailResponse(
        success=True,
        message="Email verified successfully! Welcome to the waitlist.",
        alreadyVerified=False,
        email=result["email"],
        userId=result["id"],
    )


@router.post(
    "/waitlist/save-post",
    response_model=MessageResponse,
    dependencies=[Depends(waitlist_limiter)],
)
def save_post(payload: SavePostRequest, service: WaitlistService = Depends(get_waitlist_service)):
    """Attach a promotional post URL to a verified entry."""
    if not payload.user_id or not payload.post_url:
        raise ValidationError("User ID and post URL are required")
    entry = service.record_post_url(payload.user_id, payload.post_url)
    logger.info("Post URL saved for entry %s", entry.id)
    return MessageResponse(
        success=True,
        message="Post URL saved successfully! We will verify it automatically nearer to launch.",
    )


@router.post("/waitlist/verify-post", status_code=status.HTTP_410_GONE)
def verify_post():
    # Retired: posts are checked in bulk nearer to launch
    return JSONResponse(
        status_code=status.HTTP_410_GONE,
        content={
            "success": False,
            "message": "Post verification is now handled automatically. Please use the save-post endpoint instead.",
        },
    )
