"""Lead schemas for create, update, status change, import and read operations."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.app.core.time import ensure_utc
from backend.app.schemas.user import UserSummary


AllowedLeadStatus = Literal[
    "new",
    "requested",
    "texted",
    "replied",
    "meeting_booked",
    "first_followup",
    "second_followup",
    "junk",
    "closed",
    "commented",
]
AllowedSystem = Literal["linkedin_one", "linkedin_two", "upwork"]

OPTIONAL_TEXT_FIELDS = ("email", "company", "profile_url", "post_url", "website", "notes")


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class LeadBase(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    profile_url: Optional[str] = None
    post_url: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    system: AllowedSystem = "linkedin_one"

    @field_validator(*OPTIONAL_TEXT_FIELDS, mode="before")
    @classmethod
    def empty_string_is_none(cls, v):
        return _blank_to_none(v)


class LeadCreate(LeadBase):
    """Schema for lead creation requests."""

    assigned_to_id: Optional[int] = None


class LeadUpdate(BaseModel):
    """Schema for lead updates with partial fields."""

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    profile_url: Optional[str] = None
    post_url: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    system: Optional[AllowedSystem] = None
    status: Optional[AllowedLeadStatus] = None
    assigned_to_id: Optional[int] = None
    reason: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v):
        return _blank_to_none(v)


class StatusChange(BaseModel):
    new_status: AllowedLeadStatus
    reason: Optional[str] = None


class StatusHistoryRead(BaseModel):
    id: int
    lead_id: int
    user_id: Optional[int] = None
    user: Optional[UserSummary] = None
    old_status: Optional[str] = None
    new_status: str
    reason: Optional[str] = None
    actor_kind: str
    created_at: datetime

    @field_validator("created_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v):
        return ensure_utc(v) if isinstance(v, datetime) else v

    model_config = ConfigDict(from_attributes=True)


class LeadRead(LeadBase):
    """Schema for lead responses."""

    id: int
    email: Optional[str] = None
    status: str
    assigned_to_id: Optional[int] = None
    assigned_to: Optional[UserSummary] = None
    created_by_id: Optional[int] = None
    texted_at: Optional[datetime] = None
    first_followup_at: Optional[datetime] = None
    second_followup_at: Optional[datetime] = None
    replied_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_status_updater: Optional[UserSummary] = None
    last_status_updated_at: Optional[datetime] = None

    @field_validator(
        "texted_at",
        "first_followup_at",
        "second_followup_at",
        "replied_at",
        "created_at",
        "updated_at",
        "last_status_updated_at",
        mode="before",
    )
    @classmethod
    def ensure_timezone(cls, v):
        return ensure_utc(v) if isinstance(v, datetime) else v

    model_config = ConfigDict(from_attributes=True)


class LeadDetail(LeadRead):
    status_history: list[StatusHistoryRead] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class LeadPage(BaseModel):
    leads: list[LeadRead]
    pagination: Pagination


class LeadImportRecord(LeadBase):
    """One already-parsed candidate row from a bulk import."""

    assigned_to_id: Optional[int] = None


class SkippedImportRecord(BaseModel):
    name: str
    email: Optional[str] = None
    company: Optional[str] = None
    profile_url: Optional[str] = None
    reason: str


class LeadImportDetails(BaseModel):
    created: list[LeadRead]
    skipped: list[SkippedImportRecord]


class LeadImportResult(BaseModel):
    success: bool = True
    created: int
    skipped: int
    details: LeadImportDetails
