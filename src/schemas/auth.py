"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from src.models.user import UserRole


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    success: bool
    message: str
    user_id: Optional[int] = None
    display_name: str = Field(default="")
    role: str = Field(default="")


class CurrentUserResponse(BaseModel):
    """Signed-in account."""

    id: int
    username: str
    display_name: str
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}
