"""Coach-facing performance analytics over a student's tasks."""
from __future__ import annotations

import re
from collections import OrderedDict, defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from coachdesk.db.base import to_naive_utc, utcnow
from coachdesk.models.task import Task, TaskStatus, TaskType
from coachdesk.schemas.analytics import (
    AnalyticsWindow,
    ReadingWeek,
    StudentAnalytics,
    SubjectScores,
    TopicScore,
)

WINDOWS: dict[str, timedelta | None] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

_LEADING_INT = re.compile(r"^\s*(\d+)")


def net_score(correct: int, wrong: int) -> float:
    """Each wrong answer cancels a third of a correct one; empties are neutral."""
    return correct - wrong / 3


def parse_page_count(topic: str | None) -> int:
    """Leading integer of a reading task's topic, 0 when there is none."""
    if not topic:
        return 0
    match = _LEADING_INT.match(topic)
    return int(match.group(1)) if match else 0


def week_start(day: date, first_weekday: int = 0) -> date:
    return day - timedelta(days=(day.weekday() - first_weekday) % 7)


def filter_window(
    tasks: Iterable[Task],
    window: AnalyticsWindow,
    now: datetime | None = None,
) -> list[Task]:
    span = WINDOWS[window]
    if span is None:
        return list(tasks)
    now = to_naive_utc(now) if now is not None else utcnow()
    since = now - span
    return [task for task in tasks if task.created_at >= since]


def aggregate_scores(tasks: Iterable[Task]) -> list[SubjectScores]:
    """Per subject and topic sums of completed question-solving tasks."""
    totals: "OrderedDict[str, OrderedDict[str, list[int]]]" = OrderedDict()
    for task in tasks:
        if task.task_type != TaskType.QUESTION_SOLVING.value:
            continue
        if task.status != TaskStatus.COMPLETED.value:
            continue
        topics = totals.setdefault(task.subject, OrderedDict())
        bucket = topics.setdefault(task.topic, [0, 0, 0, 0])
        bucket[0] += task.correct_count or 0
        bucket[1] += task.empty_count or 0
        bucket[2] += task.wrong_count or 0
        bucket[3] += task.question_count or 0

    subjects: list[SubjectScores] = []
    for subject, topics in totals.items():
        topic_scores = [
            TopicScore(
                topic=topic,
                correct=correct,
                empty=empty,
                wrong=wrong,
                total=total,
                net=round(net_score(correct, wrong), 2),
            )
            for topic, (correct, empty, wrong, total) in topics.items()
        ]
        correct = sum(t.correct for t in topic_scores)
        wrong = sum(t.wrong for t in topic_scores)
        subjects.append(
            SubjectScores(
                subject=subject,
                topics=topic_scores,
                correct=correct,
                empty=sum(t.empty for t in topic_scores),
                wrong=wrong,
                total=sum(t.total for t in topic_scores),
                net=round(net_score(correct, wrong), 2),
            )
        )
    return subjects


def aggregate_reading(tasks: Iterable[Task], first_weekday: int = 0) -> list[ReadingWeek]:
    """Pages read per week, keyed by the week's first day, oldest first."""
    pages: dict[date, int] = defaultdict(int)
    for task in tasks:
        if task.task_type != TaskType.READING.value:
            continue
        if task.status != TaskStatus.COMPLETED.value:
            continue
        bucket = week_start(task.created_at.date(), first_weekday)
        pages[bucket] += parse_page_count(task.topic)
    return [ReadingWeek(week_start=week, pages=count) for week, count in sorted(pages.items())]


def build_student_analytics(
    student_id: str,
    tasks: Iterable[Task],
    window: AnalyticsWindow = "all",
    now: datetime | None = None,
    first_weekday: int = 0,
) -> StudentAnalytics:
    in_window = filter_window(tasks, window, now)
    reading = aggregate_reading(in_window, first_weekday)
    return StudentAnalytics(
        student_id=student_id,
        window=window,
        subjects=aggregate_scores(in_window),
        reading=reading,
        total_pages=sum(week.pages for week in reading),
    )
