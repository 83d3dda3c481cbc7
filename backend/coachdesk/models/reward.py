from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from coachdesk.db.base import Base, new_id, utcnow


class Reward(Base):
    __tablename__ = "rewards"

    id = Column(String(36), primary_key=True, default=new_id)
    coach_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_claimed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
