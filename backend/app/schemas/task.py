"""Task schemas for assignment, completion and edits."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.core.time import ensure_utc
from backend.app.schemas.lead import Pagination
from backend.app.schemas.user import UserSummary

AllowedTaskStatus = Literal["undone", "done", "backlog"]


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    assigned_to_id: int
    created_at: Optional[datetime] = None
    due_at: Optional[datetime] = None


class TaskUpdate(BaseModel):
    """Admin edit; status is driven by completion and the backlog sweep only."""

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    assigned_to_id: Optional[int] = None
    created_at: Optional[datetime] = None
    due_at: Optional[datetime] = None


class TaskComplete(BaseModel):
    completed: bool


class TaskRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    assigned_to_id: int
    assigned_to: Optional[UserSummary] = None
    created_by_id: Optional[int] = None
    created_by: Optional[UserSummary] = None
    status: AllowedTaskStatus
    created_at: datetime
    due_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("created_at", "due_at", "completed_at", mode="before")
    @classmethod
    def ensure_timezone(cls, v):
        return ensure_utc(v) if isinstance(v, datetime) else v

    model_config = ConfigDict(from_attributes=True)


class TaskPage(BaseModel):
    tasks: list[TaskRead]
    pagination: Pagination
