from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from coachdesk.db.base import Base, utcnow


class Role(str, PyEnum):
    STUDENT = "student"
    COACH = "coach"
    ADMIN = "admin"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("username", name="uq_profiles_username"),)

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    # Stored as a plain string so backups round-trip without enum coercion
    role = Column(String(16), nullable=False, default=Role.STUDENT.value)
    first_name = Column(String(120), nullable=False, default="")
    last_name = Column(String(120), nullable=False, default="")
    username = Column(String(64), nullable=False)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")
