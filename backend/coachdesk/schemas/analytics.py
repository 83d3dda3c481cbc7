from datetime import date
from typing import Literal

from pydantic import BaseModel


AnalyticsWindow = Literal["24h", "7d", "30d", "all"]


class TopicScore(BaseModel):
    topic: str
    correct: int
    empty: int
    wrong: int
    total: int
    net: float


class SubjectScores(BaseModel):
    subject: str
    topics: list[TopicScore]
    correct: int
    empty: int
    wrong: int
    total: int
    net: float


class ReadingWeek(BaseModel):
    week_start: date
    pages: int


class StudentAnalytics(BaseModel):
    student_id: str
    window: AnalyticsWindow
    subjects: list[SubjectScores]
    reading: list[ReadingWeek]
    total_pages: int
