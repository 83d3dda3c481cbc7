from datetime import timedelta

from coachdesk.models import Role, Task, TaskStatus, TaskType

from conftest import auth_headers, reload


def _question_task(student_id, **overrides):
    payload = {
        "student_id": student_id,
        "subject": "Matematik",
        "topic": "Üslü İfadeler",
        "task_type": TaskType.QUESTION_SOLVING.value,
        "question_count": 20,
    }
    payload.update(overrides)
    return payload


def test_catalog_lists_subjects(client, student):
    response = client.get("/tasks/catalog", headers=auth_headers(student))

    assert response.status_code == 200
    names = [entry["name"] for entry in response.json()]
    assert "Matematik" in names
    assert "Kitap Okuma" in names


def test_coach_creates_task_for_own_student(client, paired):
    coach, student = paired

    response = client.post("/tasks/", json=_question_task(student.id), headers=auth_headers(coach))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["coach_id"] == coach.id
    assert body["time_left"].startswith("2")
    assert body["deadline"].endswith("Z") or body["deadline"].endswith("+00:00")


def test_task_creation_is_limited_to_paired_students(client, coach, student):
    response = client.post("/tasks/", json=_question_task(student.id), headers=auth_headers(coach))

    assert response.status_code == 403


def test_students_cannot_create_tasks(client, paired):
    _, student = paired

    response = client.post("/tasks/", json=_question_task(student.id), headers=auth_headers(student))

    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden: User is not a coach"


def test_question_count_is_validated(client, paired):
    coach, student = paired

    response = client.post(
        "/tasks/",
        json=_question_task(student.id, question_count=None),
        headers=auth_headers(coach),
    )

    assert response.status_code == 422


def test_listing_expires_overdue_tasks_and_splits_scopes(client, paired, make_task):
    coach, student = paired
    fresh = make_task(coach, student)
    overdue = make_task(coach, student, age=timedelta(hours=30))
    done = make_task(coach, student, task_type=TaskType.READING, status=TaskStatus.COMPLETED, topic="40")

    current = client.get("/tasks/", headers=auth_headers(student)).json()
    completed = client.get("/tasks/?scope=completed", headers=auth_headers(student)).json()
    everything = client.get("/tasks/?scope=all", headers=auth_headers(student)).json()

    assert [t["id"] for t in current] == [fresh.id]
    assert {t["id"] for t in completed} == {overdue.id, done.id}
    assert len(everything) == 3
    expired = next(t for t in completed if t["id"] == overdue.id)
    assert expired["status"] == "not_completed"
    assert expired["time_left"] is None


def test_coach_filters_by_student(client, paired, make_user, make_task, pair_users):
    coach, student = paired
    other = make_user(Role.STUDENT)
    pair_users(coach, other)
    make_task(coach, student)
    make_task(coach, other)
    stranger = make_user(Role.STUDENT)

    mine = client.get(f"/tasks/?student_id={student.id}", headers=auth_headers(coach))
    forbidden = client.get(f"/tasks/?student_id={stranger.id}", headers=auth_headers(coach))

    assert [t["student_id"] for t in mine.json()] == [student.id]
    assert forbidden.status_code == 403


def test_grouped_listing(client, paired, make_task):
    coach, student = paired
    make_task(coach, student, subject="Fen Bilimleri", topic="Basınç")
    make_task(coach, student, subject="Matematik")

    grouped = client.get("/tasks/grouped", headers=auth_headers(coach)).json()

    assert set(grouped) == {"Fen Bilimleri", "Matematik"}


def test_full_review_flow(client, db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, question_count=20)

    submitted = client.post(f"/tasks/{task.id}/complete", headers=auth_headers(student))
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "pending_approval"
    assert submitted.json()["time_left"] is None

    again = client.post(f"/tasks/{task.id}/complete", headers=auth_headers(student))
    assert again.status_code == 409

    bad = client.post(
        f"/tasks/{task.id}/review",
        json={"decision": "completed", "correct_count": 10, "wrong_count": 5, "empty_count": 2},
        headers=auth_headers(coach),
    )
    assert bad.status_code == 422
    assert reload(db_session, Task, task.id).status == "pending_approval"

    good = client.post(
        f"/tasks/{task.id}/review",
        json={"decision": "completed", "correct_count": 15, "wrong_count": 3, "empty_count": 2},
        headers=auth_headers(coach),
    )
    assert good.status_code == 200
    assert good.json()["status"] == "completed"
    assert good.json()["correct_count"] == 15


def test_submitting_an_overdue_task_conflicts(client, db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, age=timedelta(hours=25))

    response = client.post(f"/tasks/{task.id}/complete", headers=auth_headers(student))

    assert response.status_code == 409
    assert reload(db_session, Task, task.id).status == "not_completed"


def test_tasks_of_other_users_are_not_found(client, paired, make_user, make_task):
    coach, student = paired
    task = make_task(coach, student)
    other_student = make_user(Role.STUDENT)
    other_coach = make_user(Role.COACH)

    assert client.post(f"/tasks/{task.id}/complete", headers=auth_headers(other_student)).status_code == 404
    review = client.post(
        f"/tasks/{task.id}/review",
        json={"decision": "not_completed"},
        headers=auth_headers(other_coach),
    )
    assert review.status_code == 404


def test_delete_is_idempotent(client, db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student)

    first = client.delete(f"/tasks/{task.id}", headers=auth_headers(coach))
    second = client.delete(f"/tasks/{task.id}", headers=auth_headers(coach))

    assert first.status_code == 204
    assert second.status_code == 204
    assert reload(db_session, Task, task.id) is None


def test_analytics_visible_to_coach_and_student_only(client, paired, make_user, make_task):
    coach, student = paired
    make_task(
        coach,
        student,
        status=TaskStatus.COMPLETED,
        correct_count=15,
        wrong_count=3,
        empty_count=2,
    )
    outsider = make_user(Role.COACH)

    as_coach = client.get(f"/analytics/students/{student.id}?window=7d", headers=auth_headers(coach))
    as_student = client.get(f"/analytics/students/{student.id}", headers=auth_headers(student))
    as_outsider = client.get(f"/analytics/students/{student.id}", headers=auth_headers(outsider))

    assert as_coach.status_code == 200
    subject = as_coach.json()["subjects"][0]
    assert subject["subject"] == "Matematik"
    assert subject["net"] == 14.0
    assert as_student.status_code == 200
    assert as_outsider.status_code == 403
    assert client.get(f"/analytics/students/{student.id}?window=1y", headers=auth_headers(coach)).status_code == 422
