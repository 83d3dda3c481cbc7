from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint

from coachdesk.db.base import Base, new_id, utcnow


class CoachStudentPair(Base):
    __tablename__ = "coach_student_pairs"
    # A student has at most one coach at a time
    __table_args__ = (UniqueConstraint("student_id", name="uq_pairs_student"),)

    id = Column(String(36), primary_key=True, default=new_id)
    coach_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    chat_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
