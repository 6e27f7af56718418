import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Response

from app.core.deps import get_current_admin, get_waitlist_service
from app.core.exceptions import ValidationError
from app.schemas.waitlist import (
    AdminListRequest,
    AdminListResponse,
    MessageResponse,
    StatsResponse,
    StatusUpdateRequest,
)
from app.services.waitlist_service import WaitlistService
from app.utils.rate_limiter import admin_limiter

logger = logging.getLogger(__name__)

# Every route repeats the wallet signature proof; there is no session.
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(admin_limiter)])


@router.post("/waitlist", response_model=AdminListResponse)
def list_waitlist_entries(
    payload: Optional[AdminListRequest] = None,
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    """Paginated entries (newest first) with status and role breakdowns"""
    payload = payload or AdminListRequest()
    result = service.list_for_admin(
        page=payload.page,
        page_size=payload.limit,
        status=payload.status,
        search=payload.search,
    )
    return {
        "success": True,
        "entries": result["entries"],
        "pagination": result["pagination"],
        "stats": {
            "statusCounts": result["status_counts"],
            "roleCounts": result["role_counts"],
        },
    }


@router.post("/waitlist/export")
def export_waitlist(
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    content = service.export_csv()
    filename = f"waitlist-{int(time.time())}.csv"
    logger.info("Waitlist exported by %s", current_admin)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/waitlist/{entry_id}/status", response_model=MessageResponse)
def update_entry_status(
    entry_id: str,
    payload: StatusUpdateRequest,
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    if not payload.status:
        raise ValidationError("Status is required")
    entry = service.set_status(entry_id, payload.status)
    logger.info("Updated status for entry %s to %s", entry.id, entry.status.value)
    return MessageResponse(success=True, message="Status updated successfully")


@router.post("/waitlist/{entry_id}/delete", response_model=MessageResponse)
def delete_entry(
    entry_id: str,
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    service.remove(entry_id)
    logger.info("Deleted entry %s", entry_id)
    return MessageResponse(success=True, message="Entry deleted successfully")


@router.post("/waitlist/{entry_id}/resend-verification", response_model=MessageResponse)
def resend_verification(
    entry_id: str,
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    service.resend_verification(entry_id)
    logger.info("Resent verification email for entry %s", entry_id)
    return MessageResponse(success=True, message="Verification email sent successfully")


@router.get("/stats", response_model=StatsResponse)
def get_statistics(
    current_admin: str = Depends(get_current_admin),
    service: WaitlistService = Depends(get_waitlist_service),
):
    return {"success": True, "stats": service.statistics()}
