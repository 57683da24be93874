"""Login request schema for user authentication."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Payload for login attempts."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
