"""Coach/student direct messages."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, sessionmaker

from coachdesk.models.message import Message
from coachdesk.realtime.feed import INSERT, UPDATE, ChangeEvent, ChangeFeed
from coachdesk.schemas.message import MessagePublic
from coachdesk.services import accounts

logger = logging.getLogger(__name__)


def _between(first_id: str, second_id: str):
    return or_(
        and_(Message.sender_id == first_id, Message.receiver_id == second_id),
        and_(Message.sender_id == second_id, Message.receiver_id == first_id),
    )


def serialize(message: Message) -> dict[str, Any]:
    return MessagePublic.model_validate(message).model_dump()


def ensure_can_message(db: Session, sender_id: str, receiver_id: str) -> None:
    """Only a paired coach and student may write to each other.

    Raises ``LookupError`` for an unknown receiver and ``PermissionError``
    when the two are not paired or the coach has turned chat off for the
    student.
    """
    if accounts.get_profile(db, receiver_id) is None:
        raise LookupError("Receiver not found")
    pair = accounts.find_pair_between(db, sender_id, receiver_id)
    if pair is None:
        raise PermissionError("You can only message your coach or your students")
    if pair.student_id == sender_id and not pair.chat_enabled:
        raise PermissionError("Your coach has turned off messaging")


def fetch_conversation(
    db: Session,
    user_id: str,
    partner_id: str,
    limit: int | None = None,
) -> list[Message]:
    """Messages between the two users, oldest first.

    With ``limit`` only the newest ``limit`` messages are returned, still in
    ascending order.
    """
    query = db.query(Message).filter(_between(user_id, partner_id))
    if limit is None:
        return query.order_by(Message.created_at, Message.id).all()
    newest = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    return list(reversed(newest))


def mark_read(
    db: Session,
    receiver_id: str,
    sender_id: str,
    feed: ChangeFeed | None = None,
) -> int:
    """Mark every unread message from ``sender_id`` to ``receiver_id`` as read."""
    updated = (
        db.query(Message)
        .filter(
            Message.receiver_id == receiver_id,
            Message.sender_id == sender_id,
            Message.is_read.is_(False),
        )
        .update({Message.is_read: True}, synchronize_session=False)
    )
    db.commit()
    if updated and feed is not None:
        feed.publish(
            ChangeEvent(
                table="messages",
                type=UPDATE,
                new={"sender_id": sender_id, "receiver_id": receiver_id, "is_read": True},
                old={"sender_id": sender_id, "receiver_id": receiver_id, "is_read": False},
            )
        )
    return updated


def send_message(
    db: Session,
    sender_id: str,
    receiver_id: str,
    content: str,
    client_token: str | None = None,
    feed: ChangeFeed | None = None,
) -> Message:
    content = content.strip()
    if not content:
        raise ValueError("Message cannot be empty")
    ensure_can_message(db, sender_id, receiver_id)
    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        client_token=client_token,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.debug(f"Message {message.id} sent from {sender_id} to {receiver_id}")
    if feed is not None:
        feed.publish(ChangeEvent(table="messages", type=INSERT, new=serialize(message)))
    return message


def count_unread(db: Session, user_id: str) -> int:
    return (
        db.query(func.count(Message.id))
        .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
        .scalar()
    ) or 0


def unread_by_sender(db: Session, user_id: str) -> dict[str, int]:
    rows = (
        db.query(Message.sender_id, func.count(Message.id))
        .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
        .group_by(Message.sender_id)
        .all()
    )
    return {sender_id: count for sender_id, count in rows}


class MessageStore:
    """Session-per-call access for long-lived realtime objects.

    Every method opens and closes its own session and returns plain dicts,
    so callers can run them in a worker thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        feed: ChangeFeed,
        history_limit: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.feed = feed
        self.history_limit = history_limit

    def fetch_conversation(self, user_id: str, partner_id: str) -> list[dict[str, Any]]:
        db = self._session_factory()
        try:
            rows = fetch_conversation(db, user_id, partner_id, self.history_limit)
            return [serialize(row) for row in rows]
        finally:
            db.close()

    def mark_read(self, receiver_id: str, sender_id: str) -> int:
        db = self._session_factory()
        try:
            return mark_read(db, receiver_id, sender_id, feed=self.feed)
        finally:
            db.close()

    def send(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        client_token: str | None = None,
    ) -> dict[str, Any]:
        db = self._session_factory()
        try:
            message = send_message(
                db, sender_id, receiver_id, content, client_token, feed=self.feed
            )
            return serialize(message)
        finally:
            db.close()

    def count_unread(self, user_id: str) -> int:
        db = self._session_factory()
        try:
            return count_unread(db, user_id)
        finally:
            db.close()
