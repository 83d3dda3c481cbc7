from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.ext.hybrid import hybrid_property

from coachdesk.db.base import Base, new_id, utcnow


class TaskType(str, PyEnum):
    EXPLANATION = "konu_anlatimi"
    QUESTION_SOLVING = "soru_cozumu"
    READING = "kitap_okuma"


class TaskStatus(str, PyEnum):
    PENDING = "pending"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"
    NOT_COMPLETED = "not_completed"


OPEN_STATUSES = (TaskStatus.PENDING.value, TaskStatus.PENDING_APPROVAL.value)
CLOSED_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.NOT_COMPLETED.value)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=new_id)
    coach_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject = Column(String(120), nullable=False)
    # Topic name, or a page count for reading tasks
    topic = Column(String(255), nullable=False)
    # Use String for SQLite compatibility - enum values are stored as strings
    task_type = Column(String(20), nullable=False)
    question_count = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value, index=True)
    correct_count = Column(Integer, nullable=True)
    empty_count = Column(Integer, nullable=True)
    wrong_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @hybrid_property
    def status_enum(self) -> TaskStatus:
        """Return status as TaskStatus enum"""
        if isinstance(self.status, TaskStatus):
            return self.status
        return TaskStatus(self.status) if self.status else TaskStatus.PENDING

    @property
    def is_question_solving(self) -> bool:
        return self.task_type == TaskType.QUESTION_SOLVING.value
