from typing import Any

from pydantic import BaseModel, Field

from coachdesk.models.profile import Role


class AdminUser(BaseModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: Role = Role.STUDENT
    username: str = ""


class AdminUserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    role: Role | None = None


class ReassignRequest(BaseModel):
    student_id: str
    # A concrete coach id, or "unassign"/null to leave the student without a coach
    coach_id: str | None = None


class BackupSnapshot(BaseModel):
    profiles: list[dict[str, Any]] = Field(default_factory=list)
    coach_student_pairs: list[dict[str, Any]] = Field(default_factory=list)
    messages: list[dict[str, Any]] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    rewards: list[dict[str, Any]] = Field(default_factory=list)


class ClearResult(BaseModel):
    message: str
    deleted_users: list[str]
    failed_users: list[str]


class MessageResponse(BaseModel):
    message: str
