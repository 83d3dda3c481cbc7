import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.schemas.pair import AddStudentRequest, ChatToggleRequest, PairedStudent
from coachdesk.schemas.profile import ProfileSummary
from coachdesk.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()

coach_only = deps.require_role(Role.COACH)


def _paired_student(profile: Profile, chat_enabled: bool) -> PairedStudent:
    return PairedStudent(
        id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        username=profile.username,
        chat_enabled=chat_enabled,
    )


def _get_pair_or_404(db: Session, coach_id: str, student_id: str):
    pair = accounts.get_pair(db, coach_id, student_id)
    if pair is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student is not in your list",
        )
    return pair


@router.get("/", response_model=list[PairedStudent])
def list_my_students(
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
) -> list[PairedStudent]:
    return [
        _paired_student(profile, pair.chat_enabled)
        for profile, pair in accounts.list_students_of(db, coach.id)
    ]


@router.get("/unassigned", response_model=list[ProfileSummary])
def list_unassigned(
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
) -> list[ProfileSummary]:
    return accounts.list_unassigned_students(db)


@router.post("/", response_model=PairedStudent, status_code=status.HTTP_201_CREATED)
def add_student(
    payload: AddStudentRequest,
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
) -> PairedStudent:
    try:
        pair = accounts.pair_student(db, coach.id, payload.student_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except accounts.PairingConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(pair)
    return _paired_student(accounts.get_profile(db, pair.student_id), pair.chat_enabled)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_student(
    student_id: str,
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
) -> Response:
    accounts.unpair_student(db, coach.id, student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{student_id}/chat", response_model=PairedStudent)
def toggle_chat(
    student_id: str,
    payload: ChatToggleRequest,
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
) -> PairedStudent:
    pair = _get_pair_or_404(db, coach.id, student_id)
    pair.chat_enabled = payload.chat_enabled
    db.add(pair)
    db.commit()
    logger.info(
        f"Coach {coach.id} turned chat {'on' if payload.chat_enabled else 'off'} "
        f"for student {student_id}"
    )
    return _paired_student(accounts.get_profile(db, student_id), pair.chat_enabled)


@router.delete("/{student_id}/account", status_code=status.HTTP_204_NO_CONTENT)
def delete_student_account(
    student_id: str,
    db: Session = Depends(get_db),
    coach: Profile = Depends(coach_only),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> Response:
    """Delete a paired student's account and everything attached to it."""
    _get_pair_or_404(db, coach.id, student_id)
    accounts.delete_account(db, student_id, feed=feed)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
