"""Account, profile and coach-student pairing operations.

The cross-account operations here (listing every user, cascading deletes,
reassigning a student's coach) are only reachable through routes that have
already re-checked the caller's stored role.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from coachdesk.models.message import Message
from coachdesk.models.pair import CoachStudentPair
from coachdesk.models.profile import Profile, Role
from coachdesk.models.reward import Reward
from coachdesk.models.task import Task
from coachdesk.models.user import User
from coachdesk.realtime.feed import DELETE, ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

UNASSIGN = "unassign"


class PairingConflictError(ValueError):
    """The student already has a coach."""


def username_exists(db: Session, username: str, exclude_id: str | None = None) -> bool:
    query = db.query(Profile.id).filter(Profile.username == username)
    if exclude_id is not None:
        query = query.filter(Profile.id != exclude_id)
    return query.first() is not None


def get_profile(db: Session, profile_id: str) -> Profile | None:
    return db.query(Profile).filter(Profile.id == profile_id).first()


def get_profile_with_role(db: Session, profile_id: str, role: Role) -> Profile:
    profile = get_profile(db, profile_id)
    if profile is None:
        raise LookupError(f"{role.value.capitalize()} not found")
    if profile.role != role.value:
        raise ValueError(f"User is not a {role.value}")
    return profile


def get_pair_for_student(db: Session, student_id: str) -> CoachStudentPair | None:
    return (
        db.query(CoachStudentPair)
        .filter(CoachStudentPair.student_id == student_id)
        .first()
    )


def get_pair(db: Session, coach_id: str, student_id: str) -> CoachStudentPair | None:
    return (
        db.query(CoachStudentPair)
        .filter(
            CoachStudentPair.coach_id == coach_id,
            CoachStudentPair.student_id == student_id,
        )
        .first()
    )


def find_pair_between(db: Session, first_id: str, second_id: str) -> CoachStudentPair | None:
    """The pair linking two profiles, whichever of them is the coach."""
    return get_pair(db, first_id, second_id) or get_pair(db, second_id, first_id)


def list_students_of(db: Session, coach_id: str) -> list[tuple[Profile, CoachStudentPair]]:
    return (
        db.query(Profile, CoachStudentPair)
        .join(CoachStudentPair, CoachStudentPair.student_id == Profile.id)
        .filter(CoachStudentPair.coach_id == coach_id)
        .order_by(Profile.first_name, Profile.last_name)
        .all()
    )


def list_coaches(db: Session) -> list[Profile]:
    return (
        db.query(Profile)
        .filter(Profile.role == Role.COACH.value)
        .order_by(Profile.first_name, Profile.last_name)
        .all()
    )


def list_unassigned_students(db: Session) -> list[Profile]:
    assigned = select(CoachStudentPair.student_id)
    return (
        db.query(Profile)
        .filter(Profile.role == Role.STUDENT.value, Profile.id.not_in(assigned))
        .order_by(Profile.first_name, Profile.last_name)
        .all()
    )


def pair_student(db: Session, coach_id: str, student_id: str) -> CoachStudentPair:
    """Attach an unassigned student to a coach. Does not commit."""
    get_profile_with_role(db, student_id, Role.STUDENT)
    existing = get_pair_for_student(db, student_id)
    if existing is not None:
        if existing.coach_id == coach_id:
            raise PairingConflictError("Student is already in your list")
        raise PairingConflictError("Student already has a coach")
    pair = CoachStudentPair(coach_id=coach_id, student_id=student_id)
    db.add(pair)
    db.flush()
    logger.info(f"Paired student {student_id} with coach {coach_id}")
    return pair


def unpair_student(db: Session, coach_id: str, student_id: str) -> int:
    deleted = (
        db.query(CoachStudentPair)
        .filter(
            CoachStudentPair.coach_id == coach_id,
            CoachStudentPair.student_id == student_id,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Coach {coach_id} unpaired student {student_id} ({deleted} row(s))")
    return deleted


def clear_pairs(db: Session, profile_id: str) -> int:
    """Drop every pair ``profile_id`` is part of, on either side. Does not commit."""
    return (
        db.query(CoachStudentPair)
        .filter(
            or_(
                CoachStudentPair.coach_id == profile_id,
                CoachStudentPair.student_id == profile_id,
            )
        )
        .delete(synchronize_session=False)
    )


def reassign_coach(db: Session, student_id: str, coach_id: str | None) -> CoachStudentPair | None:
    """Replace a student's pairing.

    Any existing pair for the student is removed; a new one is inserted only
    when ``coach_id`` names a concrete coach (not ``None`` or ``"unassign"``).
    """
    get_profile_with_role(db, student_id, Role.STUDENT)
    assign = bool(coach_id) and coach_id != UNASSIGN
    if assign:
        get_profile_with_role(db, coach_id, Role.COACH)

    removed = (
        db.query(CoachStudentPair)
        .filter(CoachStudentPair.student_id == student_id)
        .delete(synchronize_session=False)
    )
    pair = None
    if assign:
        pair = CoachStudentPair(coach_id=coach_id, student_id=student_id)
        db.add(pair)
    db.commit()
    if pair is not None:
        db.refresh(pair)
    logger.info(
        f"Reassigned student {student_id}: removed {removed} pair(s), "
        f"new coach {coach_id if assign else 'none'}"
    )
    return pair


def list_users(db: Session) -> list[dict[str, str]]:
    """Identity records merged with their profile, profile fields defaulted when missing."""
    rows = (
        db.query(User, Profile)
        .outerjoin(Profile, Profile.id == User.id)
        .order_by(User.created_at)
        .all()
    )
    users = []
    for user, profile in rows:
        users.append(
            {
                "id": user.id,
                "email": user.email,
                "first_name": profile.first_name if profile else "",
                "last_name": profile.last_name if profile else "",
                "role": profile.role if profile else Role.STUDENT.value,
                "username": profile.username if profile else "",
            }
        )
    return users


def update_profile_fields(db: Session, profile: Profile, data: dict) -> Profile:
    for key, value in data.items():
        if value is not None:
            setattr(profile, key, value)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def message_receivers(db: Session, user_id: str | None = None) -> set[str]:
    """Receivers of the messages ``user_id`` took part in, or of every message."""
    query = db.query(Message.receiver_id).distinct()
    if user_id is not None:
        query = query.filter(
            or_(Message.sender_id == user_id, Message.receiver_id == user_id)
        )
    return {receiver_id for (receiver_id,) in query.all()}


def publish_messages_removed(feed: ChangeFeed | None, receiver_ids: set[str]) -> None:
    """Tell live unread counters that messages addressed to them are gone."""
    if feed is None:
        return
    for receiver_id in sorted(receiver_ids):
        feed.publish(
            ChangeEvent(table="messages", type=DELETE, old={"receiver_id": receiver_id})
        )


def purge_user_data(db: Session, user_id: str) -> None:
    """Delete every row that references ``user_id``. Does not commit."""
    clear_pairs(db, user_id)
    db.query(Reward).filter(
        or_(Reward.coach_id == user_id, Reward.student_id == user_id)
    ).delete(synchronize_session=False)
    db.query(Task).filter(
        or_(Task.coach_id == user_id, Task.student_id == user_id)
    ).delete(synchronize_session=False)
    db.query(Message).filter(
        or_(Message.sender_id == user_id, Message.receiver_id == user_id)
    ).delete(synchronize_session=False)


def delete_identity(db: Session, user_id: str) -> bool:
    """Remove the profile and identity record. Does not commit."""
    db.query(Profile).filter(Profile.id == user_id).delete(synchronize_session=False)
    deleted = db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
    return deleted > 0


def delete_account(db: Session, user_id: str, feed: ChangeFeed | None = None) -> None:
    """Delete a user and cascade their pairs, rewards, tasks and messages."""
    if db.query(User.id).filter(User.id == user_id).first() is None:
        raise LookupError("User not found")
    receivers = message_receivers(db, user_id) - {user_id}
    purge_user_data(db, user_id)
    delete_identity(db, user_id)
    db.commit()
    publish_messages_removed(feed, receivers)
    logger.info(f"Deleted account {user_id} and its related data")
