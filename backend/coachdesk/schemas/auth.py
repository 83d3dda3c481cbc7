from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from coachdesk.schemas.profile import ProfilePublic


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    username: str = Field(min_length=3, max_length=64)
    # Admin accounts are never self-registered
    role: Literal["student", "coach"] = "student"
    coach_id: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class UsernameCheckRequest(BaseModel):
    username: str = Field(min_length=1)


class UsernameCheckResponse(BaseModel):
    exists: bool


class SessionInfo(BaseModel):
    """Identity plus profile, the shape the client gates its screens on."""
    user_id: str
    email: EmailStr
    profile: ProfilePublic | None = None
