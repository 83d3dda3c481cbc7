from datetime import timedelta

import pytest
from pydantic import ValidationError

from coachdesk.models import Role
from coachdesk.models.task import Task, TaskStatus, TaskType
from coachdesk.schemas.task import TaskCreate, TaskReview
from coachdesk.services import task_lifecycle
from coachdesk.services.task_lifecycle import ScoreValidationError, TaskTransitionError

from conftest import reload


def _approve(correct, wrong, empty) -> TaskReview:
    return TaskReview(
        decision="completed", correct_count=correct, wrong_count=wrong, empty_count=empty
    )


def test_student_submission_moves_pending_to_pending_approval(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student)

    task_lifecycle.submit_for_approval(db_session, task)

    assert reload(db_session, Task, task.id).status == TaskStatus.PENDING_APPROVAL.value


@pytest.mark.parametrize(
    "status",
    [TaskStatus.PENDING_APPROVAL, TaskStatus.COMPLETED, TaskStatus.NOT_COMPLETED],
)
def test_submission_only_allowed_from_pending(db_session, paired, make_task, status):
    coach, student = paired
    task = make_task(coach, student, status=status)

    with pytest.raises(TaskTransitionError):
        task_lifecycle.submit_for_approval(db_session, task)

    assert reload(db_session, Task, task.id).status == status.value


def test_overdue_submission_expires_the_task(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, age=timedelta(hours=25))

    with pytest.raises(TaskTransitionError, match="deadline"):
        task_lifecycle.submit_for_approval(db_session, task)

    assert reload(db_session, Task, task.id).status == TaskStatus.NOT_COMPLETED.value


def test_submission_loses_to_concurrent_transition(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student)
    # Another actor moves the row while we still hold the old copy
    db_session.query(Task).filter(Task.id == task.id).update(
        {Task.status: TaskStatus.NOT_COMPLETED.value}, synchronize_session=False
    )
    db_session.commit()

    with pytest.raises(TaskTransitionError):
        task_lifecycle.submit_for_approval(db_session, task)
    assert task.status == TaskStatus.NOT_COMPLETED.value


def test_review_scenario_scores_must_match_question_count(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, question_count=20)
    task_lifecycle.submit_for_approval(db_session, task)

    task_lifecycle.review_task(db_session, task, _approve(15, 3, 2))
    stored = reload(db_session, Task, task.id)
    assert stored.status == TaskStatus.COMPLETED.value
    assert (stored.correct_count, stored.wrong_count, stored.empty_count) == (15, 3, 2)

    with pytest.raises(ScoreValidationError):
        task_lifecycle.review_task(db_session, stored, _approve(10, 5, 2))
    stored = reload(db_session, Task, task.id)
    assert stored.status == TaskStatus.COMPLETED.value
    assert (stored.correct_count, stored.wrong_count, stored.empty_count) == (15, 3, 2)


def test_invalid_sum_leaves_pending_approval_untouched(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, status=TaskStatus.PENDING_APPROVAL, question_count=20)

    with pytest.raises(ScoreValidationError):
        task_lifecycle.review_task(db_session, task, _approve(10, 5, 2))

    stored = reload(db_session, Task, task.id)
    assert stored.status == TaskStatus.PENDING_APPROVAL.value
    assert stored.correct_count is None


def test_missing_counts_are_rejected(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, status=TaskStatus.PENDING_APPROVAL)

    with pytest.raises(ScoreValidationError):
        task_lifecycle.review_task(db_session, task, TaskReview(decision="completed"))


def test_reject_clears_previous_counts(db_session, paired, make_task):
    coach, student = paired
    task = make_task(
        coach,
        student,
        status=TaskStatus.PENDING_APPROVAL,
        correct_count=10,
        wrong_count=5,
        empty_count=5,
    )

    task_lifecycle.review_task(db_session, task, TaskReview(decision="not_completed"))

    stored = reload(db_session, Task, task.id)
    assert stored.status == TaskStatus.NOT_COMPLETED.value
    assert stored.correct_count is None
    assert stored.wrong_count is None
    assert stored.empty_count is None


def test_question_task_cannot_be_reviewed_before_submission(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student)

    with pytest.raises(TaskTransitionError):
        task_lifecycle.review_task(db_session, task, _approve(20, 0, 0))
    assert reload(db_session, Task, task.id).status == TaskStatus.PENDING.value


def test_other_task_types_can_be_approved_directly(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, task_type=TaskType.EXPLANATION, topic="Fiilimsiler")

    task_lifecycle.review_task(db_session, task, TaskReview(decision="completed"))

    assert reload(db_session, Task, task.id).status == TaskStatus.COMPLETED.value


@pytest.mark.parametrize("decision", ["completed", "not_completed"])
def test_review_after_deadline_expires_the_task(db_session, paired, make_task, decision):
    coach, student = paired
    task = make_task(
        coach, student, task_type=TaskType.EXPLANATION, topic="Fiilimsiler", age=timedelta(hours=30)
    )

    with pytest.raises(TaskTransitionError, match="deadline"):
        task_lifecycle.review_task(db_session, task, TaskReview(decision=decision))

    assert reload(db_session, Task, task.id).status == TaskStatus.NOT_COMPLETED.value


def test_waiting_approval_can_be_reviewed_after_the_window(db_session, paired, make_task):
    coach, student = paired
    task = make_task(
        coach, student, status=TaskStatus.PENDING_APPROVAL, age=timedelta(hours=30)
    )

    task_lifecycle.review_task(db_session, task, _approve(20, 0, 0))

    assert reload(db_session, Task, task.id).status == TaskStatus.COMPLETED.value


def test_closed_tasks_cannot_be_reviewed_again(db_session, paired, make_task):
    coach, student = paired
    task = make_task(coach, student, task_type=TaskType.READING, status=TaskStatus.NOT_COMPLETED)

    with pytest.raises(TaskTransitionError):
        task_lifecycle.review_task(db_session, task, TaskReview(decision="completed"))


def test_deleting_a_missing_task_is_a_no_op(db_session, coach):
    assert task_lifecycle.delete_task(db_session, "does-not-exist", coach.id) == 0


def test_delete_only_touches_own_tasks(db_session, paired, make_task, make_user):
    coach, student = paired
    task = make_task(coach, student)
    other_coach = make_user(Role.COACH)

    assert task_lifecycle.delete_task(db_session, task.id, other_coach.id) == 0
    assert task_lifecycle.delete_task(db_session, task.id, coach.id) == 1
    assert reload(db_session, Task, task.id) is None


def test_group_by_subject_keeps_first_seen_order():
    tasks = [
        Task(subject="Matematik", topic="a"),
        Task(subject="Türkçe", topic="b"),
        Task(subject="Matematik", topic="c"),
    ]

    grouped = task_lifecycle.group_by_subject(tasks)

    assert list(grouped) == ["Matematik", "Türkçe"]
    assert [task.topic for task in grouped["Matematik"]] == ["a", "c"]


def test_question_count_required_only_for_question_solving():
    with pytest.raises(ValidationError):
        TaskCreate(student_id="s", subject="Matematik", topic="x", task_type=TaskType.QUESTION_SOLVING)
    with pytest.raises(ValidationError):
        TaskCreate(
            student_id="s",
            subject="Matematik",
            topic="x",
            task_type=TaskType.QUESTION_SOLVING,
            question_count=0,
        )
    with pytest.raises(ValidationError):
        TaskCreate(
            student_id="s",
            subject="Kitap Okuma",
            topic="40",
            task_type=TaskType.READING,
            question_count=10,
        )

    created = TaskCreate(student_id="s", subject="Kitap Okuma", topic="40", task_type=TaskType.READING)
    assert created.question_count is None
