"""User schemas used for account management and responses."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AllowedRole = Literal["admin", "lead_gen", "outreach"]


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=6)
    role: AllowedRole


class UserSummary(BaseModel):
    id: int
    username: str

    model_config = ConfigDict(from_attributes=True)


class UserRead(UserSummary):
    role: AllowedRole
    created_at: Optional[datetime] = None
