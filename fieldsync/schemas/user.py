"""User and authentication schemas."""
from pydantic import BaseModel, ConfigDict
from typing import Optional

from fieldsync.models.user import UserRole


class UserResponse(BaseModel):
    """Authenticated user as exposed to devices."""
    id: int
    email: str
    full_name: str
    role: UserRole
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    """Email/password login from a device."""
    email: str
    password: str
    device_id: Optional[str] = None


class RefreshRequest(BaseModel):
    """Exchange a refresh token for a new token pair."""
    refresh_token: str
    device_id: Optional[str] = None


class TokenPair(BaseModel):
    """Issued tokens plus the user they belong to."""
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    user: UserResponse
