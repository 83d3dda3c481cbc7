from coachdesk.db.seed import seed_demo_data
from coachdesk.models import CoachStudentPair, Profile, Reward, Task, User
from coachdesk.services.analytics import build_student_analytics


def test_seed_is_idempotent(db_session):
    seed_demo_data(db_session)
    seed_demo_data(db_session)

    assert db_session.query(User).count() == 3
    assert db_session.query(CoachStudentPair).count() == 1
    assert db_session.query(Task).count() == 4
    assert db_session.query(Reward).count() == 1


def test_seeded_student_has_analytics(db_session):
    seed_demo_data(db_session)
    student = db_session.query(Profile).filter(Profile.username == "mehmetd").one()
    tasks = db_session.query(Task).filter(Task.student_id == student.id).all()

    analytics = build_student_analytics(student.id, tasks, "all")

    assert [s.subject for s in analytics.subjects] == ["Matematik"]
    assert analytics.subjects[0].net == 14.0
    assert analytics.total_pages == 40
