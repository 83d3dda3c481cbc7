import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from coachdesk.api import deps
from coachdesk.db.session import get_db
from coachdesk.models.profile import Profile, Role
from coachdesk.models.task import CLOSED_STATUSES, OPEN_STATUSES, Task, TaskStatus
from coachdesk.schemas.task import SubjectCatalogEntry, TaskCreate, TaskPublic, TaskReview
from coachdesk.services import accounts, curriculum, deadlines, task_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter()

TaskScope = Literal["current", "completed", "all"]

_SCOPES = {
    "current": OPEN_STATUSES,
    "completed": CLOSED_STATUSES,
    "all": None,
}


def _serialize_task(task: Task) -> TaskPublic:
    """Serialize a task with its deadline countdown.

    Timestamps are made timezone-aware by the schema.
    Only pending tasks carry ``deadline`` and ``time_left``.
    """
    task_dict = {
        column.key: getattr(task, column.key) for column in Task.__table__.columns
    }
    if task.status == TaskStatus.PENDING.value:
        task_dict["deadline"] = deadlines.deadline_for(task.created_at)
        task_dict["time_left"] = deadlines.format_time_left(
            deadlines.time_left(task.created_at)
        )
    return TaskPublic(**task_dict)


def _get_task_or_404(db: Session, task_id: str, profile: Profile) -> Task:
    owner = Task.coach_id if profile.role == Role.COACH.value else Task.student_id
    task = db.query(Task).filter(Task.id == task_id, owner == profile.id).first()
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )
    return task


def _visible_tasks(
    db: Session,
    profile: Profile,
    scope: TaskScope,
    student_id: str | None,
) -> list[Task]:
    # Pending tasks past their deadline are expired before anyone sees them
    deadlines.expire_overdue(db)

    query = db.query(Task)
    if profile.role == Role.COACH.value:
        query = query.filter(Task.coach_id == profile.id)
        if student_id is not None:
            if accounts.get_pair(db, profile.id, student_id) is None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Student is not in your list",
                )
            query = query.filter(Task.student_id == student_id)
    else:
        query = query.filter(Task.student_id == profile.id)

    statuses = _SCOPES[scope]
    if statuses is not None:
        query = query.filter(Task.status.in_(statuses))
    return query.order_by(Task.created_at.desc()).all()


@router.get("/catalog", response_model=list[SubjectCatalogEntry])
def get_catalog(
    profile: Profile = Depends(deps.get_current_profile),
) -> list[SubjectCatalogEntry]:
    return curriculum.catalog()


@router.get("/", response_model=list[TaskPublic])
def list_tasks(
    scope: TaskScope = Query(default="current"),
    student_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.require_role(Role.STUDENT, Role.COACH)),
) -> list[TaskPublic]:
    """A student's own tasks, or a coach's tasks optionally narrowed to one student."""
    return [_serialize_task(task) for task in _visible_tasks(db, profile, scope, student_id)]


@router.get("/grouped", response_model=dict[str, list[TaskPublic]])
def list_tasks_grouped(
    scope: TaskScope = Query(default="current"),
    student_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    profile: Profile = Depends(deps.require_role(Role.STUDENT, Role.COACH)),
) -> dict[str, list[TaskPublic]]:
    tasks = _visible_tasks(db, profile, scope, student_id)
    return {
        subject: [_serialize_task(task) for task in subject_tasks]
        for subject, subject_tasks in task_lifecycle.group_by_subject(tasks).items()
    }


@router.post("/", response_model=TaskPublic, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    coach: Profile = Depends(deps.require_role(Role.COACH)),
) -> TaskPublic:
    if accounts.get_pair(db, coach.id, payload.student_id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only assign tasks to your own students",
        )
    task = task_lifecycle.create_task(db, coach.id, payload)
    return _serialize_task(task)


@router.post("/{task_id}/complete", response_model=TaskPublic)
def complete_task(
    task_id: str,
    db: Session = Depends(get_db),
    student: Profile = Depends(deps.require_role(Role.STUDENT)),
) -> TaskPublic:
    """Student marks a pending task as done; it then waits for coach approval."""
    task = _get_task_or_404(db, task_id, student)
    try:
        task_lifecycle.submit_for_approval(db, task)
    except task_lifecycle.TaskTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _serialize_task(task)


@router.post("/{task_id}/review", response_model=TaskPublic)
def review_task(
    task_id: str,
    payload: TaskReview,
    db: Session = Depends(get_db),
    coach: Profile = Depends(deps.require_role(Role.COACH)),
) -> TaskPublic:
    task = _get_task_or_404(db, task_id, coach)
    try:
        task_lifecycle.review_task(db, task, payload)
    except task_lifecycle.ScoreValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except task_lifecycle.TaskTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _serialize_task(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    coach: Profile = Depends(deps.require_role(Role.COACH)),
) -> Response:
    """Hard delete. Deleting a task that no longer exists is not an error."""
    task_lifecycle.delete_task(db, task_id, coach.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
