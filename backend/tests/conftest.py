from __future__ import annotations

import os

# Settings are read once at import time; point them at a throwaway database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DEADLINE_SCHEDULER_ENABLED"] = "false"

from datetime import timedelta
from functools import lru_cache
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from coachdesk.core.security import create_access_token, get_password_hash
from coachdesk.db.base import Base, utcnow
from coachdesk.db.session import get_db, get_session_factory
from coachdesk.main import create_app
from coachdesk.models import CoachStudentPair, Profile, Role, Task, TaskStatus, TaskType, User

PASSWORD = "password123"

_counter = count(1)


@lru_cache
def _password_hash() -> str:
    return get_password_hash(PASSWORD)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker):
    # Objects stay readable after other sessions change or delete their rows
    session = session_factory(expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def app(session_factory: sessionmaker):
    app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def feed(app):
    return app.state.change_feed


@pytest.fixture()
def make_user(db_session: Session):
    def _make_user(role: Role = Role.STUDENT, first_name: str = "Test", username: str | None = None) -> Profile:
        n = next(_counter)
        email = f"{role.value}{n}@example.com"
        user = User(email=email, hashed_password=_password_hash())
        user.profile = Profile(
            role=role.value,
            first_name=first_name,
            last_name=f"User{n}",
            username=username or f"{role.value}{n}",
            email=email,
        )
        db_session.add(user)
        db_session.commit()
        return user.profile

    return _make_user


@pytest.fixture()
def pair_users(db_session: Session):
    def _pair(coach: Profile, student: Profile, chat_enabled: bool = True) -> CoachStudentPair:
        pair = CoachStudentPair(coach_id=coach.id, student_id=student.id, chat_enabled=chat_enabled)
        db_session.add(pair)
        db_session.commit()
        return pair

    return _pair


@pytest.fixture()
def make_task(db_session: Session):
    def _make_task(
        coach: Profile,
        student: Profile,
        task_type: TaskType = TaskType.QUESTION_SOLVING,
        status: TaskStatus = TaskStatus.PENDING,
        age: timedelta = timedelta(0),
        **fields,
    ) -> Task:
        fields.setdefault("subject", "Matematik")
        fields.setdefault("topic", "Üslü İfadeler")
        if task_type == TaskType.QUESTION_SOLVING:
            fields.setdefault("question_count", 20)
        task = Task(
            coach_id=coach.id,
            student_id=student.id,
            task_type=task_type.value,
            status=status.value,
            created_at=utcnow() - age,
            **fields,
        )
        db_session.add(task)
        db_session.commit()
        return task

    return _make_task


@pytest.fixture()
def coach(make_user) -> Profile:
    return make_user(Role.COACH, first_name="Coach")


@pytest.fixture()
def student(make_user) -> Profile:
    return make_user(Role.STUDENT, first_name="Student")


@pytest.fixture()
def admin(make_user) -> Profile:
    return make_user(Role.ADMIN, first_name="Admin")


@pytest.fixture()
def paired(coach: Profile, student: Profile, pair_users) -> tuple[Profile, Profile]:
    pair_users(coach, student)
    return coach, student


def auth_headers(profile: Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile.id)}"}


def token_for(profile: Profile) -> str:
    return create_access_token(profile.id)


def reload(db_session: Session, model, object_id: str):
    """Fresh copy of a row as currently stored."""
    return db_session.get(model, object_id, populate_existing=True)
