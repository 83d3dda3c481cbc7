from pydantic import BaseModel, Field

from coachdesk.schemas.common import UTCDateTime


class RewardCreate(BaseModel):
    student_id: str
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None


class RewardPublic(BaseModel):
    id: str
    coach_id: str
    student_id: str
    title: str
    description: str | None = None
    is_claimed: bool
    created_at: UTCDateTime

    class Config:
        from_attributes = True
