from pydantic import BaseModel, EmailStr, Field, validator
from typing import Callable, Dict, List, Optional, TypeVar

from app.core.exceptions import ValidationError
from app.services.waitlist_service import (
    normalize_name,
    normalize_note,
    normalize_roles,
    normalize_wallet,
    normalize_x_handle,
)

T = TypeVar("T")


def _checked(normalize: Callable[..., T], value) -> T:
    # Reuse the service rules so the boundary and the service agree
    try:
        return normalize(value)
    except ValidationError as e:
        raise ValueError(e.message)


class WaitlistSubmission(BaseModel):
    name: str
    email: EmailStr
    roles: List[str]
    wallet_address: Optional[str] = Field(default=None, alias="walletAddress")
    note: Optional[str] = None
    x_handle: Optional[str] = Field(default=None, alias="xHandle")

    @validator("name")
    def name_length(cls, v):
        return _checked(normalize_name, v)

    @validator("roles")
    def roles_known(cls, v):
        return _checked(normalize_roles, v)

    @validator("wallet_address")
    def wallet_shape(cls, v):
        return _checked(normalize_wallet, v)

    @validator("note")
    def note_length(cls, v):
        return _checked(normalize_note, v)

    @validator("x_handle")
    def x_handle_shape(cls, v):
        return _checked(normalize_x_handle, v)

    class Config:
        populate_by_name = True


class WaitlistSubmitResponse(BaseModel):
    success: bool
    message: str
    id: str


class VerifyEmailResponse(BaseModel):
    success: bool
    message: str
    alreadyVerified: Optional[bool] = None
    email: Optional[str] = None
    userId: Optional[str] = None


class SavePostRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    post_url: Optional[str] = Field(default=None, alias="postUrl")

    class Config:
        populate_by_name = True


class MessageResponse(BaseModel):
    success: bool
    message: str


class AdminListRequest(BaseModel):
    """Admin list filters; the signature fields travel in the same body."""
    page: int = 1
    limit: int = 50
    status: Optional[str] = None
    search: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class WaitlistStats(BaseModel):
    total: int
    verified: int
    unverified: int
    pending: int
    approved: int
    rejected: int


class StatsResponse(BaseModel):
    success: bool
    stats: WaitlistStats


class AdminListResponse(BaseModel):
    success: bool
    entries: List[dict]
    pagination: Dict[str, int]
    stats: Dict[str, Dict[str, int]]
