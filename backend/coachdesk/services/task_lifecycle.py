"""Task status machine.

    pending ──student──▶ pending_approval ──coach──▶ completed | not_completed
    pending ──deadline──▶ not_completed
    pending ──coach──▶ completed | not_completed   (non question-solving only)

Every transition is a conditional update on the expected source status, so a
concurrent transition that got there first makes ours fail instead of
silently overwriting it.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Iterable

from sqlalchemy.orm import Session

from coachdesk.db.base import utcnow
from coachdesk.models.task import Task, TaskStatus
from coachdesk.schemas.task import TaskCreate, TaskReview
from coachdesk.services import deadlines

logger = logging.getLogger(__name__)


class TaskTransitionError(Exception):
    """The requested transition is not allowed from the task's current status."""


class ScoreValidationError(ValueError):
    """Coach-entered counts do not add up to the task's question count."""


def create_task(db: Session, coach_id: str, payload: TaskCreate) -> Task:
    data = payload.model_dump()
    data["task_type"] = payload.task_type.value
    task = Task(coach_id=coach_id, status=TaskStatus.PENDING.value, **data)
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(
        f"Coach {coach_id} created {task.task_type} task {task.id} for student {task.student_id}"
    )
    return task


def _transition(db: Session, task: Task, source: Iterable[str], values: dict) -> None:
    values = {**values, Task.updated_at: utcnow()}
    updated = (
        db.query(Task)
        .filter(Task.id == task.id, Task.status.in_(list(source)))
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        db.refresh(task)
        raise TaskTransitionError(
            f"Task {task.id} changed concurrently (now {task.status})"
        )
    db.commit()
    db.refresh(task)


def _expire_if_overdue(db: Session, task: Task, now: datetime | None, action: str) -> None:
    """Expire a pending task found past its window and refuse ``action``."""
    if not deadlines.is_overdue(task, now):
        return
    if deadlines.expire_task(db, task.id):
        db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} was {action} after its deadline and has expired")
    raise TaskTransitionError("The deadline for this task has passed")


def submit_for_approval(db: Session, task: Task, now: datetime | None = None) -> Task:
    """Student marks a pending task as done."""
    if task.status_enum != TaskStatus.PENDING:
        raise TaskTransitionError(
            f"Only pending tasks can be submitted (task is {task.status})"
        )
    _expire_if_overdue(db, task, now, "submitted")

    _transition(
        db,
        task,
        [TaskStatus.PENDING.value],
        {Task.status: TaskStatus.PENDING_APPROVAL.value},
    )
    logger.info(f"Task {task.id} sent for coach approval")
    return task


def validate_scores(
    task: Task,
    correct: int | None,
    wrong: int | None,
    empty: int | None,
) -> tuple[int, int, int]:
    counts = (correct, wrong, empty)
    if any(value is None for value in counts):
        raise ScoreValidationError("Correct, wrong and empty counts are all required")
    if any(value < 0 for value in counts):
        raise ScoreValidationError("Counts cannot be negative")
    total = correct + wrong + empty
    if total != task.question_count:
        raise ScoreValidationError(
            f"Counts add up to {total} but the task has {task.question_count} questions"
        )
    return correct, wrong, empty


def _review_sources(task: Task) -> list[str]:
    if task.is_question_solving:
        return [TaskStatus.PENDING_APPROVAL.value]
    return [TaskStatus.PENDING.value, TaskStatus.PENDING_APPROVAL.value]


def review_task(
    db: Session, task: Task, review: TaskReview, now: datetime | None = None
) -> Task:
    """Coach approves or rejects a task.

    A pending task already past its deadline is expired instead of reviewed.
    Score validation runs before the status check, so an invalid score entry
    never mutates the task whatever state it is in.
    """
    _expire_if_overdue(db, task, now, "reviewed")
    approve = review.decision == TaskStatus.COMPLETED.value
    if approve and task.is_question_solving:
        correct, wrong, empty = validate_scores(
            task, review.correct_count, review.wrong_count, review.empty_count
        )
        values = {
            Task.status: TaskStatus.COMPLETED.value,
            Task.correct_count: correct,
            Task.wrong_count: wrong,
            Task.empty_count: empty,
        }
    elif approve:
        values = {Task.status: TaskStatus.COMPLETED.value}
    else:
        values = {
            Task.status: TaskStatus.NOT_COMPLETED.value,
            Task.correct_count: None,
            Task.wrong_count: None,
            Task.empty_count: None,
        }

    sources = _review_sources(task)
    if task.status not in sources:
        raise TaskTransitionError(
            f"Task {task.id} cannot be reviewed while {task.status}"
        )
    _transition(db, task, sources, values)
    logger.info(f"Coach {task.coach_id} reviewed task {task.id}: {task.status}")
    return task


def delete_task(db: Session, task_id: str, coach_id: str) -> int:
    """Hard-delete a coach's task. Zero affected rows is not an error."""
    deleted = (
        db.query(Task)
        .filter(Task.id == task_id, Task.coach_id == coach_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info(f"Coach {coach_id} deleted task {task_id} ({deleted} row(s))")
    return deleted


def group_by_subject(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Group tasks by subject, keeping first-seen subject order."""
    grouped: "OrderedDict[str, list[Task]]" = OrderedDict()
    for task in tasks:
        grouped.setdefault(task.subject, []).append(task)
    return grouped
