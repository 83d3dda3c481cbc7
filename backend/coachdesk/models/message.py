from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text

from coachdesk.db.base import Base, new_id, utcnow


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
        Index("ix_messages_pair_created", "sender_id", "receiver_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    sender_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    # Correlation token of the optimistic entry that produced this row
    client_token = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
