from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.core.config import get_settings
from coachdesk.core.security import get_password_hash, verify_password
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.models.user import User
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.realtime.identity import USER_UPDATED, auth_event
from coachdesk.schemas.profile import (
    ChangeEmailRequest,
    ChangePasswordRequest,
    ProfilePublic,
    ProfileSummary,
    ProfileUpdate,
)
from coachdesk.services import accounts

router = APIRouter()


@router.get("/me", response_model=ProfilePublic)
def get_my_profile(profile: Profile = Depends(deps.get_current_profile)) -> ProfilePublic:
    return profile


@router.patch("/me", response_model=ProfilePublic)
def update_my_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.get_current_profile),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> ProfilePublic:
    data = payload.model_dump(exclude_unset=True)
    username = data.get("username")
    if username and accounts.username_exists(db, username, exclude_id=profile.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Username already taken"
        )
    profile = accounts.update_profile_fields(db, profile, data)
    feed.publish(auth_event(profile.id, USER_UPDATED))
    return profile


@router.post("/me/password")
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> dict[str, str]:
    """Change password - requires current password."""
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    if payload.new_password != payload.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New passwords do not match",
        )
    min_length = get_settings().min_password_length
    if len(payload.new_password) < min_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {min_length} characters",
        )
    if verify_password(payload.new_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must differ from the current one",
        )

    current_user.hashed_password = get_password_hash(payload.new_password)
    db.add(current_user)
    db.commit()
    feed.publish(auth_event(current_user.id, USER_UPDATED))
    return {"message": "Password changed successfully"}


@router.post("/me/email", response_model=ProfilePublic)
def change_email(
    payload: ChangeEmailRequest,
    current_user: User = Depends(deps.get_current_user),
    profile: Profile = Depends(deps.get_current_profile),
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> ProfilePublic:
    """Change email - requires password confirmation."""
    if not verify_password(payload.password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is incorrect",
        )
    existing = (
        db.query(User)
        .filter(User.email == payload.new_email, User.id != current_user.id)
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    current_user.email = payload.new_email
    profile.email = payload.new_email
    db.add_all([current_user, profile])
    db.commit()
    db.refresh(profile)
    feed.publish(auth_event(current_user.id, USER_UPDATED))
    return profile


@router.get("/me/coach", response_model=ProfileSummary)
def get_my_coach(
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.require_role(Role.STUDENT)),
) -> ProfileSummary:
    pair = accounts.get_pair_for_student(db, profile.id)
    coach = accounts.get_profile(db, pair.coach_id) if pair else None
    if coach is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="You have no coach yet"
        )
    return coach
