"""Deadline bookkeeping for pending tasks.

A task that stays in ``pending`` longer than the deadline window is moved to
``not_completed``. The move is a conditional single-row update, so however
many sweeps observe the same overdue task it is expired exactly once.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from coachdesk.core.config import get_settings
from coachdesk.db.base import to_naive_utc, utcnow
from coachdesk.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


def default_window() -> timedelta:
    return timedelta(hours=get_settings().task_deadline_hours)


def deadline_for(created_at: datetime, window: timedelta | None = None) -> datetime:
    return to_naive_utc(created_at) + (window or default_window())


def time_left(
    created_at: datetime,
    now: datetime | None = None,
    window: timedelta | None = None,
) -> timedelta:
    """Remaining time before the deadline, never negative."""
    now = to_naive_utc(now) if now is not None else utcnow()
    remaining = deadline_for(created_at, window) - now
    return max(remaining, timedelta(0))


def format_time_left(remaining: timedelta) -> str:
    total = max(int(remaining.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def is_overdue(task: Task, now: datetime | None = None, window: timedelta | None = None) -> bool:
    return (
        task.status == TaskStatus.PENDING.value
        and time_left(task.created_at, now, window) == timedelta(0)
    )


def expire_task(db: Session, task_id: str) -> bool:
    """Move one task from pending to not_completed. Does not commit.

    Returns False when the task was no longer pending, which is how repeated
    ticks after expiry become no-ops.
    """
    updated = (
        db.query(Task)
        .filter(Task.id == task_id, Task.status == TaskStatus.PENDING.value)
        .update(
            {Task.status: TaskStatus.NOT_COMPLETED.value, Task.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    return updated == 1


def expire_overdue(
    db: Session,
    now: datetime | None = None,
    window: timedelta | None = None,
) -> list[str]:
    """Expire every overdue pending task and return the ids that moved."""
    now = to_naive_utc(now) if now is not None else utcnow()
    cutoff = now - (window or default_window())
    candidates = [
        task_id
        for (task_id,) in db.query(Task.id)
        .filter(Task.status == TaskStatus.PENDING.value, Task.created_at <= cutoff)
        .all()
    ]
    expired = [task_id for task_id in candidates if expire_task(db, task_id)]
    if expired:
        db.commit()
        logger.info(f"Expired {len(expired)} overdue task(s): {', '.join(expired)}")
    return expired


class DeadlineScheduler:
    """One shared interval job that evaluates every pending deadline.

    Replaces a timer per task: ``start()`` registers a single APScheduler job
    that sweeps on a background thread and ``stop()`` shuts it down.
    """

    JOB_ID = "expire_overdue_tasks"

    def __init__(
        self,
        session_factory: sessionmaker,
        interval: float = 1.0,
        window: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.interval = interval
        self.window = window
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def sweep(self, now: datetime | None = None) -> list[str]:
        db = self._session_factory()
        try:
            return expire_overdue(db, now=now, window=self.window)
        except SQLAlchemyError:
            logger.exception("Deadline sweep failed, retrying on next tick")
            return []
        finally:
            db.close()

    async def tick(self, now: datetime | None = None) -> list[str]:
        return await run_in_threadpool(self.sweep, now)

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self.sweep,
            "interval",
            seconds=self.interval,
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )
        self._scheduler.start()
        logger.info(f"Deadline scheduler enabled: every {self.interval}s")

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=True)
        self._scheduler = None
        logger.info("Deadline scheduler stopped")
