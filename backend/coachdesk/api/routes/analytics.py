from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.core.config import get_settings
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.models.task import Task
from coachdesk.schemas.analytics import AnalyticsWindow, StudentAnalytics
from coachdesk.services import accounts
from coachdesk.services.analytics import build_student_analytics

router = APIRouter()


@router.get("/students/{student_id}", response_model=StudentAnalytics)
def get_student_analytics(
    student_id: str,
    window: AnalyticsWindow = Query(default="all"),
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.get_current_profile),
) -> StudentAnalytics:
    """Question-solving scores and reading volume for one student.

    Available to the student's coach and to the student themself.
    """
    if profile.role == Role.COACH.value:
        allowed = accounts.get_pair(db, profile.id, student_id) is not None
    else:
        allowed = profile.id == student_id
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view this student's analytics",
        )

    tasks = (
        db.query(Task)
        .filter(Task.student_id == student_id)
        .order_by(Task.created_at)
        .all()
    )
    return build_student_analytics(
        student_id,
        tasks,
        window=window,
        first_weekday=get_settings().week_start_day,
    )
