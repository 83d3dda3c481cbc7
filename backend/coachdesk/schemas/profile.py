from pydantic import BaseModel, EmailStr, Field

from coachdesk.models.profile import Role
from coachdesk.schemas.common import UTCDateTime


class ProfileBase(BaseModel):
    role: Role
    first_name: str
    last_name: str
    username: str
    email: EmailStr


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=120)
    last_name: str | None = Field(default=None, min_length=1, max_length=120)
    username: str | None = Field(default=None, min_length=3, max_length=64)


class ProfileInDBBase(ProfileBase):
    id: str
    created_at: UTCDateTime
    updated_at: UTCDateTime

    class Config:
        from_attributes = True


class ProfilePublic(ProfileInDBBase):
    pass


class ProfileSummary(BaseModel):
    id: str
    first_name: str
    last_name: str
    role: Role

    class Config:
        from_attributes = True


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str


class ChangeEmailRequest(BaseModel):
    new_email: EmailStr
    password: str  # Require password confirmation for security
