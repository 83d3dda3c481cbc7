from typing import Literal

from pydantic import BaseModel, Field, model_validator

from coachdesk.models.task import TaskStatus, TaskType
from coachdesk.schemas.common import UTCDateTime


class TaskBase(BaseModel):
    subject: str = Field(min_length=1, max_length=120)
    topic: str = Field(min_length=1, max_length=255)
    task_type: TaskType
    question_count: int | None = None
    description: str | None = None


class TaskCreate(TaskBase):
    student_id: str

    @model_validator(mode="after")
    def check_question_count(self):
        """question_count is required (and positive) only for question-solving tasks."""
        if self.task_type == TaskType.QUESTION_SOLVING:
            if self.question_count is None or self.question_count <= 0:
                raise ValueError("question_count must be a positive number for question-solving tasks")
        elif self.question_count is not None:
            raise ValueError("question_count is only allowed for question-solving tasks")
        return self


class TaskReview(BaseModel):
    decision: Literal["completed", "not_completed"]
    correct_count: int | None = Field(default=None, ge=0)
    wrong_count: int | None = Field(default=None, ge=0)
    empty_count: int | None = Field(default=None, ge=0)


class TaskInDBBase(TaskBase):
    id: str
    coach_id: str
    student_id: str
    status: TaskStatus
    correct_count: int | None = None
    empty_count: int | None = None
    wrong_count: int | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    class Config:
        from_attributes = True


class TaskPublic(TaskInDBBase):
    # Only set while the task is still pending
    deadline: UTCDateTime | None = None
    time_left: str | None = None


class SubjectCatalogEntry(BaseModel):
    name: str
    topics: list[str]
