"""Privileged operations.

Every endpoint depends on ``admin_only``, which re-reads the caller's stored
profile, so a stale or forged client role never reaches a handler.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.schemas.admin import (
    AdminUser,
    AdminUserUpdate,
    BackupSnapshot,
    ClearResult,
    MessageResponse,
    ReassignRequest,
)
from coachdesk.schemas.profile import ProfileSummary
from coachdesk.services import accounts, backup

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = deps.require_role(Role.ADMIN)


@router.get("/users", response_model=list[AdminUser])
def list_users(
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
) -> list[AdminUser]:
    return accounts.list_users(db)


@router.patch("/users/{user_id}", response_model=AdminUser)
def update_user(
    user_id: str,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
) -> AdminUser:
    profile = accounts.get_profile(db, user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    data = payload.model_dump(exclude_unset=True)
    if data.get("role") is not None:
        data["role"] = data["role"].value
        if data["role"] != profile.role:
            # Pairings belong to the old role
            removed = accounts.clear_pairs(db, user_id)
            logger.info(f"Role change for {user_id} removed {removed} pair(s)")
    profile = accounts.update_profile_fields(db, profile, data)
    logger.info(f"Admin {admin.id} updated user {user_id}: {sorted(data)}")
    return AdminUser(
        id=profile.id,
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        role=profile.role,
        username=profile.username,
    )


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> MessageResponse:
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )
    try:
        accounts.delete_account(db, user_id, feed=feed)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    logger.info(f"Admin {admin.id} deleted user {user_id}")
    return MessageResponse(message="User deleted successfully")


@router.get("/coaches", response_model=list[ProfileSummary])
def list_coaches(
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
) -> list[ProfileSummary]:
    return accounts.list_coaches(db)


@router.post("/reassign", response_model=MessageResponse)
def reassign_student(
    payload: ReassignRequest,
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
) -> MessageResponse:
    """Move a student to another coach, or leave them without one when
    ``coach_id`` is ``"unassign"`` or null.
    """
    try:
        pair = accounts.reassign_coach(db, payload.student_id, payload.coach_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if pair is None:
        return MessageResponse(message="Student unassigned")
    return MessageResponse(message="Coach reassigned successfully")


@router.get("/backup", response_model=BackupSnapshot)
def take_backup(
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
) -> BackupSnapshot:
    logger.info(f"Admin {admin.id} requested a backup")
    return BackupSnapshot(**backup.backup_snapshot(db))


@router.post("/restore", response_model=MessageResponse)
def restore_backup(
    payload: BackupSnapshot,
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> MessageResponse:
    logger.warning(f"Admin {admin.id} is restoring a backup")
    try:
        backup.restore_snapshot(db, payload.model_dump(), feed=feed)
    except (SQLAlchemyError, KeyError, TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Restore failed: {exc}",
        ) from exc
    return MessageResponse(message="Backup restored successfully")


@router.post("/clear", response_model=ClearResult)
def clear_all(
    db: Session = Depends(get_db),
    admin: Profile = Depends(admin_only),
    feed: ChangeFeed = Depends(deps.get_change_feed),
) -> ClearResult:
    logger.warning(f"Admin {admin.id} is clearing the database")
    deleted, failed = backup.clear_database(db, feed=feed)
    return ClearResult(
        message="Database cleared",
        deleted_users=deleted,
        failed_users=failed,
    )
