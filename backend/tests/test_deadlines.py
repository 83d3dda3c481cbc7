import asyncio
import time
from datetime import datetime, timedelta, timezone

from coachdesk.models.task import Task, TaskStatus
from coachdesk.services import deadlines
from coachdesk.services.deadlines import DeadlineScheduler

from conftest import reload

CREATED = datetime(2026, 3, 2, 9, 0, 0)
WINDOW = timedelta(hours=24)


def test_time_left_counts_down_from_creation():
    now = CREATED + timedelta(hours=23, minutes=59, seconds=30)

    assert deadlines.time_left(CREATED, now, WINDOW) == timedelta(seconds=30)
    assert deadlines.time_left(CREATED, CREATED, WINDOW) == WINDOW


def test_time_left_never_goes_negative():
    now = CREATED + timedelta(days=3)

    assert deadlines.time_left(CREATED, now, WINDOW) == timedelta(0)


def test_time_left_accepts_aware_timestamps():
    now = datetime(2026, 3, 2, 15, 0, 0, tzinfo=timezone(timedelta(hours=3)))

    # 15:00+03:00 is noon UTC, three hours after creation
    assert deadlines.time_left(CREATED, now, WINDOW) == timedelta(hours=21)


def test_format_time_left():
    assert deadlines.format_time_left(timedelta(hours=5, minutes=3, seconds=9)) == "05:03:09"
    assert deadlines.format_time_left(timedelta(hours=26)) == "26:00:00"
    assert deadlines.format_time_left(timedelta(seconds=-10)) == "00:00:00"


def test_expire_overdue_moves_only_overdue_pending_tasks(db_session, paired, make_task):
    coach, student = paired
    overdue = make_task(coach, student, age=timedelta(hours=25))
    fresh = make_task(coach, student, age=timedelta(hours=2))
    waiting = make_task(
        coach, student, status=TaskStatus.PENDING_APPROVAL, age=timedelta(hours=30)
    )

    assert deadlines.expire_overdue(db_session, window=WINDOW) == [overdue.id]

    assert reload(db_session, Task, overdue.id).status == TaskStatus.NOT_COMPLETED.value
    assert reload(db_session, Task, fresh.id).status == TaskStatus.PENDING.value
    assert reload(db_session, Task, waiting.id).status == TaskStatus.PENDING_APPROVAL.value


def test_expire_overdue_is_idempotent(db_session, paired, make_task):
    coach, student = paired
    make_task(coach, student, age=timedelta(hours=48))

    assert len(deadlines.expire_overdue(db_session, window=WINDOW)) == 1
    assert deadlines.expire_overdue(db_session, window=WINDOW) == []


def test_expire_task_only_fires_once(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, age=timedelta(hours=48))

    assert deadlines.expire_task(db_session, task.id) is True
    db_session.commit()
    assert deadlines.expire_task(db_session, task.id) is False


def test_is_overdue_ignores_non_pending_tasks(paired, make_task):
    coach, student = paired
    task = make_task(coach, student, status=TaskStatus.COMPLETED, age=timedelta(days=5))

    assert deadlines.is_overdue(task, window=WINDOW) is False


def test_scheduler_tick_expires_overdue_tasks(session_factory, db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, age=timedelta(hours=25))
    scheduler = DeadlineScheduler(session_factory, interval=60, window=WINDOW)

    first = asyncio.run(scheduler.tick())
    second = asyncio.run(scheduler.tick())

    assert first == [task.id]
    assert second == []
    assert reload(db_session, Task, task.id).status == TaskStatus.NOT_COMPLETED.value


def test_scheduler_start_and_stop(session_factory, db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, age=timedelta(hours=25))
    scheduler = DeadlineScheduler(session_factory, interval=0.05, window=WINDOW)

    scheduler.start()
    try:
        assert scheduler.running
        # Starting twice keeps the same job
        scheduler.start()
        assert len(scheduler._scheduler.get_jobs()) == 1
        time.sleep(0.3)
    finally:
        scheduler.stop()

    assert not scheduler.running
    assert reload(db_session, Task, task.id).status == TaskStatus.NOT_COMPLETED.value


def test_stop_without_start_is_a_no_op(session_factory):
    scheduler = DeadlineScheduler(session_factory)

    scheduler.stop()

    assert not scheduler.running
