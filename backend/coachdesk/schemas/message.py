from pydantic import BaseModel, Field

from coachdesk.schemas.common import UTCDateTime


class MessageCreate(BaseModel):
    receiver_id: str
    content: str = Field(min_length=1)
    client_token: str | None = Field(default=None, max_length=64)


class MessagePublic(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str
    is_read: bool
    client_token: str | None = None
    created_at: UTCDateTime

    class Config:
        from_attributes = True


class UnreadSummary(BaseModel):
    count: int
    by_sender: dict[str, int]
