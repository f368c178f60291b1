import random
from datetime import datetime, timedelta, timezone

import pytest

from training_portal.services.cbt_service import CbtService

# Async tests
pytestmark = pytest.mark.asyncio

TRAINEE = {"uid": "trainee_1", "name": "Ada Obi", "email": "ada@example.com"}


@pytest.fixture
def service(fake_db):
    svc = CbtService()
    svc.db = fake_db
    svc.rng = random.Random(7)
    return svc


async def _exam(service, **overrides):
    data = {"title": "Final Exam", "duration": 30, "randomize_questions": False}
    data.update(overrides)
    ok, exam_id, error = await service.create_exam(data, created_by="admin_1")
    assert ok, error
    return exam_id


async def _question(service, exam_id=None, correct="A", subject=None, order_index=0):
    ok, question_id, error = await service.create_question({
        "exam_id": exam_id,
        "subject": subject,
        "question": f"Pick {correct}",
        "question_type": "multiple_choice",
        "options": ["A", "B", "C"],
        "correct_answer": correct,
        "order_index": order_index,
    })
    assert ok, error
    return question_id


async def test_submit_scores_and_marks_passed(service):
    exam_id = await _exam(service)
    q1 = await _question(service, exam_id, "A", order_index=1)
    q2 = await _question(service, exam_id, "B", order_index=2)

    ok, attempt, error = await service.start_attempt(exam_id, TRAINEE)
    assert ok, error
    assert attempt["question_ids"] == [q1, q2]
    assert attempt["status"] == "in_progress"

    ok, summary, error = await service.submit_attempt(attempt["id"], "trainee_1", {q1: "a", q2: "C"})
    assert ok, error
    assert summary["score"] == 50
    assert summary["correct_answers"] == 1
    assert summary["wrong_answers"] == 1
    assert summary["is_passed"] is True
    assert summary["rating"] == "Pass"
    assert summary["status"] == "completed"
    assert len(summary["question_results"]) == 2

    stored = service.db.data["cbt_exam_attempts"][attempt["id"]]
    assert stored["status"] == "completed"
    assert stored["end_time"] is not None


async def test_answers_accepted_as_list(service):
    exam_id = await _exam(service)
    q1 = await _question(service, exam_id, "A")

    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)
    ok, summary, error = await service.submit_attempt(
        attempt["id"], "trainee_1", [{"question_id": q1, "answer": "A"}]
    )
    assert ok, error
    assert summary["score"] == 100


async def test_malformed_answers_rejected(service):
    exam_id = await _exam(service)
    await _question(service, exam_id, "A")
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    ok, _, error = await service.submit_attempt(attempt["id"], "trainee_1", "A")
    assert not ok
    assert "Answers must be" in error


async def test_in_progress_attempt_is_resumed(service):
    exam_id = await _exam(service)
    await _question(service, exam_id)

    _, first, _ = await service.start_attempt(exam_id, TRAINEE)
    ok, second, _ = await service.start_attempt(exam_id, TRAINEE)

    assert ok
    assert second["id"] == first["id"]
    assert len(service.db.data["cbt_exam_attempts"]) == 1


async def test_retake_blocked_after_finish(service):
    exam_id = await _exam(service)
    await _question(service, exam_id)

    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)
    await service.submit_attempt(attempt["id"], "trainee_1", {})

    ok, _, error = await service.start_attempt(exam_id, TRAINEE)
    assert not ok
    assert error == "You have already taken this exam"
    assert await service.has_taken_exam("trainee_1", exam_id)


async def test_cannot_submit_someone_elses_attempt(service):
    exam_id = await _exam(service)
    await _question(service, exam_id)
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    ok, _, error = await service.submit_attempt(attempt["id"], "intruder", {})
    assert not ok
    assert error == "Attempt belongs to another trainee"


async def test_inactive_exam_cannot_be_started(service):
    exam_id = await _exam(service, is_active=False)
    await _question(service, exam_id)

    ok, _, error = await service.start_attempt(exam_id, TRAINEE)
    assert not ok
    assert error == "Exam is not active"


async def test_exam_without_questions_cannot_be_started(service):
    exam_id = await _exam(service)
    ok, _, error = await service.start_attempt(exam_id, TRAINEE)
    assert not ok
    assert error == "Exam has no questions"


async def test_bank_selection_skips_exam_bound_questions(service):
    other_exam = await _exam(service, title="Other")
    bound = await _question(service, other_exam, subject="math")
    bank = [await _question(service, subject="math") for _ in range(3)]
    await _question(service, subject="english")

    exam_id = await _exam(service, subjects=["math"], total_questions=2)
    ok, attempt, error = await service.start_attempt(exam_id, TRAINEE)

    assert ok, error
    assert len(attempt["question_ids"]) == 2
    assert set(attempt["question_ids"]) <= set(bank)
    assert bound not in attempt["question_ids"]


async def test_hidden_results_are_not_returned(service):
    exam_id = await _exam(service, show_results=False)
    q1 = await _question(service, exam_id, "A")
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    ok, summary, _ = await service.submit_attempt(attempt["id"], "trainee_1", {q1: "A"})
    assert ok
    assert "question_results" not in summary
    assert summary["score"] == 100


async def test_save_progress_then_abandon_scores_saved_answers(service):
    exam_id = await _exam(service)
    q1 = await _question(service, exam_id, "A", order_index=1)
    await _question(service, exam_id, "B", order_index=2)
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    ok, error = await service.save_progress(attempt["id"], "trainee_1", {q1: "A"})
    assert ok, error

    ok, summary, error = await service.abandon_attempt(attempt["id"], trainee_id="trainee_1")
    assert ok, error
    assert summary["status"] == "abandoned"
    assert summary["correct_answers"] == 1
    assert summary["unanswered"] == 1


async def test_stale_attempts_are_abandoned(service):
    exam_id = await _exam(service, duration=30)
    await _question(service, exam_id)
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    now = datetime.now(timezone.utc)
    service.db.data["cbt_exam_attempts"][attempt["id"]]["start_time"] = now - timedelta(hours=2)

    abandoned = await service.abandon_stale_attempts(now=now)

    assert abandoned == 1
    assert service.db.data["cbt_exam_attempts"][attempt["id"]]["status"] == "abandoned"


async def test_recent_attempts_are_left_alone(service):
    exam_id = await _exam(service, duration=30)
    await _question(service, exam_id)
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    assert await service.abandon_stale_attempts() == 0
    assert service.db.data["cbt_exam_attempts"][attempt["id"]]["status"] == "in_progress"


async def test_grade_overrides_score_and_keeps_auto_score(service):
    exam_id = await _exam(service, passing_score=70)
    q1 = await _question(service, exam_id, "A")
    _, attempt, _ = await service.start_attempt(exam_id, TRAINEE)

    ok, _, error = await service.grade_attempt(attempt["id"], 80, graded_by="admin_1")
    assert not ok
    assert error == "Only finished attempts can be graded"

    await service.submit_attempt(attempt["id"], "trainee_1", {q1: "B"})
    ok, graded, error = await service.grade_attempt(attempt["id"], 80, graded_by="admin_1")

    assert ok, error
    assert graded["status"] == "graded"
    assert graded["auto_score"] == 0
    assert graded["score"] == 80
    assert graded["is_passed"] is True
    assert graded["rating"] == "Very Good"


async def test_exam_results_aggregate(service):
    exam_id = await _exam(service)
    q1 = await _question(service, exam_id, "A")

    for uid, answer in [("t1", "A"), ("t2", "B"), ("t3", "A")]:
        _, attempt, _ = await service.start_attempt(exam_id, {"uid": uid})
        await service.submit_attempt(attempt["id"], uid, {q1: answer})

    results = await service.get_exam_results(exam_id)
    assert results["total_attempts"] == 3
    assert results["passed"] == 2
    assert results["failed"] == 1
    assert results["highest_score"] == 100
    assert results["lowest_score"] == 0
    assert results["average_score"] == pytest.approx(66.67)


async def test_delete_exam_removes_bound_questions(service):
    exam_id = await _exam(service)
    bound = await _question(service, exam_id)
    bank = await _question(service, subject="math")

    ok, error = await service.delete_exam(exam_id)

    assert ok, error
    assert exam_id not in service.db.data["cbt_exams"]
    assert bound not in service.db.data["cbt_questions"]
    assert bank in service.db.data["cbt_questions"]


async def test_question_validation(service):
    ok, _, error = await service.create_question({
        "question": "Pick one", "question_type": "multiple_choice", "options": ["A"], "correct_answer": "A"
    })
    assert not ok
    assert "at least two options" in error

    result = await service.bulk_create_questions([
        {"question": "Sky is blue", "question_type": "true_false", "correct_answer": "true"},
        {"question": "", "question_type": "fill_blank", "correct_answer": "x"},
    ])
    assert len(result["created"]) == 1
    assert result["errors"][0]["index"] == 1
