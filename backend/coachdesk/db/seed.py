from datetime import timedelta

from sqlalchemy.orm import Session

from coachdesk.core.security import get_password_hash
from coachdesk.db.base import utcnow
from coachdesk.db.session import SessionLocal
from coachdesk.models.pair import CoachStudentPair
from coachdesk.models.profile import Profile, Role
from coachdesk.models.reward import Reward
from coachdesk.models.task import Task, TaskStatus, TaskType
from coachdesk.models.user import User

DEMO_PASSWORD = "password123"


def _create_account(
    db: Session, email: str, role: Role, first_name: str, last_name: str, username: str
) -> User:
    user = User(email=email, hashed_password=get_password_hash(DEMO_PASSWORD))
    user.profile = Profile(
        role=role.value,
        first_name=first_name,
        last_name=last_name,
        username=username,
        email=email,
    )
    db.add(user)
    db.flush()
    return user


def seed_demo_data(db: Session) -> None:
    existing = db.query(User).filter(User.email == "demo@coach.com").first()
    if existing:
        return
    _create_account(db, "admin@coachdesk.dev", Role.ADMIN, "Site", "Admin", "admin")
    coach = _create_account(db, "demo@coach.com", Role.COACH, "Ayşe", "Yılmaz", "ayseh")
    student = _create_account(db, "demo@student.com", Role.STUDENT, "Mehmet", "Demir", "mehmetd")
    db.add(CoachStudentPair(coach_id=coach.id, student_id=student.id))

    now = utcnow()
    tasks = [
        Task(
            coach_id=coach.id,
            student_id=student.id,
            subject="Matematik",
            topic="Üslü İfadeler",
            task_type=TaskType.QUESTION_SOLVING.value,
            question_count=20,
            status=TaskStatus.COMPLETED.value,
            correct_count=15,
            wrong_count=3,
            empty_count=2,
            created_at=now - timedelta(days=3),
        ),
        Task(
            coach_id=coach.id,
            student_id=student.id,
            subject="Fen Bilimleri",
            topic="DNA ve Genetik Kod",
            task_type=TaskType.EXPLANATION.value,
            description="Konu anlatım videosunu izle, not çıkar.",
            created_at=now - timedelta(hours=2),
        ),
        Task(
            coach_id=coach.id,
            student_id=student.id,
            subject="Türkçe",
            topic="Fiilimsiler",
            task_type=TaskType.QUESTION_SOLVING.value,
            question_count=30,
            status=TaskStatus.PENDING_APPROVAL.value,
            created_at=now - timedelta(hours=6),
        ),
        Task(
            coach_id=coach.id,
            student_id=student.id,
            subject="Kitap Okuma",
            topic="40",
            task_type=TaskType.READING.value,
            status=TaskStatus.COMPLETED.value,
            created_at=now - timedelta(days=1),
        ),
    ]
    db.add_all(tasks)
    db.add(
        Reward(
            coach_id=coach.id,
            student_id=student.id,
            title="Sinema bileti",
            description="Haftalık hedefleri tamamlarsan.",
        )
    )
    db.commit()


if __name__ == "__main__":
    with SessionLocal() as session:
        seed_demo_data(session)
