"""
CBT Service - question bank, exams and exam attempts.

Attempt lifecycle:
    in_progress -> completed   (trainee submits, auto-scored)
    in_progress -> abandoned   (trainee quits or the attempt goes stale; partial answers scored)
    completed/abandoned -> graded (admin overrides the score)

A trainee gets one attempt per exam: once an attempt is finished the exam is
considered taken, and an unfinished attempt is resumed instead of duplicated.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging
import random
import uuid

from ..database.database_service import database_service, sort_documents
from ..database.collections import COLLECTIONS
from ..models.database_models import AttemptStatus, QuestionType
from ..core.config import settings
from .cbt_scoring import (
    is_passing,
    performance_rating,
    pick_random_questions,
    score_answers,
)

logger = logging.getLogger(__name__)

FINISHED_STATUSES = {
    AttemptStatus.COMPLETED.value,
    AttemptStatus.ABANDONED.value,
    AttemptStatus.GRADED.value,
}

QUESTION_FIELDS = {
    "exam_id", "subject", "topic", "question", "question_type", "options",
    "correct_answer", "points", "order_index", "difficulty", "is_active",
}

EXAM_FIELDS = {
    "title", "description", "duration", "total_questions", "passing_score", "subjects",
    "randomize_questions", "show_results", "sponsor_id", "is_active",
}


def _doc_id(doc: Dict[str, Any]) -> str:
    return doc.get("_doc_id") or doc.get("id")


def _as_utc(value: Any) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_answers(answers: Any) -> Dict[str, str]:
    """
    Accept either {question_id: answer} or [{"question_id": ..., "answer": ...}].
    Raises ValueError for anything else.
    """
    if answers is None:
        return {}
    if isinstance(answers, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in answers.items()}
    if isinstance(answers, list):
        normalized = {}
        for item in answers:
            if not isinstance(item, Mapping) or "question_id" not in item:
                raise ValueError("Each answer must contain a question_id")
            value = item.get("answer")
            normalized[str(item["question_id"])] = "" if value is None else str(value)
        return normalized
    raise ValueError("Answers must be a list or a mapping of question id to answer")


def strip_answers(question: Dict[str, Any]) -> Dict[str, Any]:
    """Question as a trainee may see it."""
    return {k: v for k, v in question.items() if k not in ("correct_answer", "_doc_id")}


def hide_question_results(attempt: Dict[str, Any], exam: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Attempt as a trainee may see it; per-question results only when the exam shows them."""
    if exam and not exam.get("show_results", True):
        return {k: v for k, v in attempt.items() if k != "question_results"}
    return attempt


class CbtService:
    def __init__(self):
        self.db = database_service
        self.rng = random.Random()

    # ===== Question bank =====

    @staticmethod
    def _validate_question(data: Dict[str, Any]) -> Optional[str]:
        question_type = data.get("question_type", QuestionType.MULTIPLE_CHOICE.value)
        if question_type not in {t.value for t in QuestionType}:
            return f"Invalid question type: {question_type}"
        if not str(data.get("question") or "").strip():
            return "Question text is required"
        if not str(data.get("correct_answer") or "").strip():
            return "Correct answer is required"
        if question_type == QuestionType.MULTIPLE_CHOICE.value and len(data.get("options") or []) < 2:
            return "Multiple choice questions need at least two options"
        if int(data.get("points", 1) or 0) < 0:
            return "Points cannot be negative"
        return None

    async def create_question(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[str]]:
        error = self._validate_question(data)
        if error:
            return False, None, error

        question_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        question = {k: v for k, v in data.items() if k in QUESTION_FIELDS}
        question.update({
            "id": question_id,
            "question_type": data.get("question_type", QuestionType.MULTIPLE_CHOICE.value),
            "options": data.get("options") or [],
            "points": data.get("points", 1),
            "order_index": data.get("order_index", 0),
            "difficulty": data.get("difficulty", "medium"),
            "is_active": data.get("is_active", True),
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })

        success, doc_id, db_error = await self.db.create_document(
            COLLECTIONS['cbt_questions'], question, document_id=question_id
        )
        if not success:
            return False, None, f"Failed to create question: {db_error}"
        return True, doc_id, None

    async def bulk_create_questions(self, items: List[Dict[str, Any]], created_by: Optional[str] = None) -> Dict[str, Any]:
        created, errors = [], []
        for index, item in enumerate(items):
            ok, question_id, error = await self.create_question(item, created_by)
            if ok:
                created.append(question_id)
            else:
                errors.append({"index": index, "error": error})
        logger.info(f"Bulk question import: {len(created)} created, {len(errors)} failed")
        return {"created": created, "errors": errors}

    async def get_question(self, question_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, question, _ = await self.db.get_document(COLLECTIONS['cbt_questions'], question_id)
        if not success or not question:
            return False, None, "Question not found"
        return True, question, None

    async def update_question(self, question_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, current, error = await self.get_question(question_id)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if k in QUESTION_FIELDS and v is not None}
        error = self._validate_question({**current, **updates})
        if error:
            return False, error
        return await self.db.update_document(COLLECTIONS['cbt_questions'], question_id, updates)

    async def delete_question(self, question_id: str) -> Tuple[bool, Optional[str]]:
        # Soft delete: past attempts still reference the question
        success, _, error = await self.get_question(question_id)
        if not success:
            return False, error
        return await self.db.update_document(COLLECTIONS['cbt_questions'], question_id, {"is_active": False})

    async def list_questions(
        self,
        subject: Optional[str] = None,
        exam_id: Optional[str] = None,
        include_inactive: bool = False
    ) -> List[Dict[str, Any]]:
        filters = []
        if subject:
            filters.append(("subject", "==", subject))
        if exam_id:
            filters.append(("exam_id", "==", exam_id))
        if not include_inactive:
            filters.append(("is_active", "==", True))

        success, questions, error = await self.db.query_documents(
            COLLECTIONS['cbt_questions'], filters or None, order_by="order_index"
        )
        if not success:
            logger.error(f"Failed to list questions: {error}")
            return []
        return questions

    async def get_active_questions(self, subjects: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Active bank questions (not bound to an exam), optionally limited to some subjects."""
        filters = [("is_active", "==", True)]
        if subjects:
            filters.append(("subject", "in", list(subjects)))

        success, questions, error = await self.db.query_documents(COLLECTIONS['cbt_questions'], filters)
        if not success:
            logger.error(f"Failed to load active questions: {error}")
            return []

        wanted = set(subjects or [])
        return [
            q for q in questions
            if not q.get("exam_id") and (not wanted or q.get("subject") in wanted)
        ]

    # ===== Exams =====

    async def create_exam(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[str]]:
        if int(data.get("duration") or 0) < 1:
            return False, None, "Duration must be at least 1 minute"

        exam_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        exam = {k: v for k, v in data.items() if k in EXAM_FIELDS}
        exam.update({
            "id": exam_id,
            "total_questions": data.get("total_questions", 0),
            "passing_score": data.get("passing_score", settings.EXAM_PASS_MARK),
            "subjects": data.get("subjects") or [],
            "randomize_questions": data.get("randomize_questions", True),
            "show_results": data.get("show_results", True),
            "is_active": data.get("is_active", True),
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })

        success, doc_id, error = await self.db.create_document(COLLECTIONS['cbt_exams'], exam, document_id=exam_id)
        if not success:
            return False, None, f"Failed to create exam: {error}"
        logger.info(f"Exam created: {exam.get('title')} ({exam_id})")
        return True, doc_id, None

    async def get_exam(self, exam_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, exam, _ = await self.db.get_document(COLLECTIONS['cbt_exams'], exam_id)
        if not success or not exam:
            return False, None, "Exam not found"
        return True, exam, None

    async def update_exam(self, exam_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, _, error = await self.get_exam(exam_id)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if k in EXAM_FIELDS and v is not None}
        if "duration" in updates and int(updates["duration"]) < 1:
            return False, "Duration must be at least 1 minute"
        return await self.db.update_document(COLLECTIONS['cbt_exams'], exam_id, updates)

    async def delete_exam(self, exam_id: str) -> Tuple[bool, Optional[str]]:
        """Delete an exam together with the questions bound to it."""
        success, _, error = await self.get_exam(exam_id)
        if not success:
            return False, error

        found, questions, _ = await self.db.query_documents(
            COLLECTIONS['cbt_questions'], [("exam_id", "==", exam_id)]
        )
        for question in questions if found else []:
            await self.db.delete_document(COLLECTIONS['cbt_questions'], _doc_id(question))

        ok, error = await self.db.delete_document(COLLECTIONS['cbt_exams'], exam_id)
        if ok:
            logger.info(f"Exam {exam_id} deleted with {len(questions) if found else 0} question(s)")
        return ok, error

    async def list_exams(self, sponsor_id: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        filters = [("is_active", "==", True)] if active_only else None
        success, exams, error = await self.db.query_documents(
            COLLECTIONS['cbt_exams'], filters, order_by="created_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list exams: {error}")
            return []
        if sponsor_id:
            exams = [e for e in exams if not e.get("sponsor_id") or e.get("sponsor_id") == sponsor_id]
        return exams

    async def get_active_exam(self, sponsor_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Newest active exam visible to the sponsor; exams without a sponsor apply to everyone."""
        exams = await self.list_exams(sponsor_id=sponsor_id, active_only=True)
        return exams[0] if exams else None

    async def get_exam_questions(self, exam_id: str, include_answers: bool = True) -> List[Dict[str, Any]]:
        questions = await self.list_questions(exam_id=exam_id)
        questions = sort_documents(questions, "order_index")
        if include_answers:
            return questions
        return [strip_answers(q) for q in questions]

    async def _select_questions(self, exam: Dict[str, Any]) -> List[Dict[str, Any]]:
        count = int(exam.get("total_questions") or 0)
        bound = await self.get_exam_questions(_doc_id(exam))

        if bound:
            if exam.get("randomize_questions"):
                return pick_random_questions(bound, count, self.rng)
            return bound[:count] if count > 0 else bound

        bank = await self.get_active_questions(exam.get("subjects") or None)
        return pick_random_questions(bank, count, self.rng)

    # ===== Attempts =====

    async def get_attempt(self, attempt_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, attempt, _ = await self.db.get_document(COLLECTIONS['cbt_exam_attempts'], attempt_id)
        if not success or not attempt:
            return False, None, "Attempt not found"
        return True, attempt, None

    async def list_attempts(
        self,
        exam_id: Optional[str] = None,
        trainee_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        filters = []
        if exam_id:
            filters.append(("exam_id", "==", exam_id))
        if trainee_id:
            filters.append(("trainee_id", "==", trainee_id))
        if status:
            filters.append(("status", "==", status))

        success, attempts, error = await self.db.query_documents(
            COLLECTIONS['cbt_exam_attempts'], filters or None, order_by="start_time", descending=True
        )
        if not success:
            logger.error(f"Failed to list attempts: {error}")
            return []
        return attempts

    async def has_taken_exam(self, trainee_id: str, exam_id: Optional[str] = None) -> bool:
        attempts = await self.list_attempts(exam_id=exam_id, trainee_id=trainee_id)
        return any(a.get("status") in FINISHED_STATUSES for a in attempts)

    async def get_trainee_attempt(self, trainee_id: str, exam_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Latest attempt of the trainee, optionally for one exam."""
        attempts = await self.list_attempts(exam_id=exam_id, trainee_id=trainee_id)
        return attempts[0] if attempts else None

    async def trainee_views(self, attempts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Apply each exam's show_results setting to attempts returned to trainees."""
        exams: Dict[str, Optional[Dict[str, Any]]] = {}
        views = []
        for attempt in attempts:
            exam_id = attempt.get("exam_id")
            if exam_id not in exams:
                found, exam, _ = await self.get_exam(exam_id)
                exams[exam_id] = exam if found else None
            views.append(hide_question_results(attempt, exams[exam_id]))
        return views

    async def trainee_view(self, attempt: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.trainee_views([attempt]))[0]

    async def get_attempt_questions(self, attempt: Dict[str, Any], include_answers: bool = False) -> List[Dict[str, Any]]:
        """The questions frozen on the attempt, in attempt order."""
        questions = []
        for question_id in attempt.get("question_ids") or []:
            success, question, _ = await self.db.get_document(COLLECTIONS['cbt_questions'], question_id)
            if not success or not question:
                logger.warning(f"Question {question_id} of attempt {_doc_id(attempt)} no longer exists")
                continue
            questions.append(question if include_answers else strip_answers(question))
        return questions

    async def start_attempt(self, exam_id: str, trainee: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        """
        Start (or resume) the trainee's attempt at an exam.

        Args:
            exam_id: exam to sit
            trainee: dict with ``uid`` and optionally ``name`` / ``email``

        Returns:
            (success, attempt, error_message)
        """
        trainee_id = trainee.get("uid")
        if not trainee_id:
            return False, None, "Trainee ID is required"

        success, exam, error = await self.get_exam(exam_id)
        if not success:
            return False, None, error
        if not exam.get("is_active"):
            return False, None, "Exam is not active"

        existing = await self.list_attempts(exam_id=exam_id, trainee_id=trainee_id)
        if any(a.get("status") in FINISHED_STATUSES for a in existing):
            return False, None, "You have already taken this exam"
        in_progress = [a for a in existing if a.get("status") == AttemptStatus.IN_PROGRESS.value]
        if in_progress:
            logger.info(f"Resuming attempt {_doc_id(in_progress[0])} for trainee {trainee_id}")
            return True, in_progress[0], None

        questions = await self._select_questions(exam)
        if not questions:
            return False, None, "Exam has no questions"

        attempt_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        attempt = {
            "id": attempt_id,
            "exam_id": exam_id,
            "exam_title": exam.get("title"),
            "trainee_id": trainee_id,
            "trainee_name": trainee.get("name"),
            "trainee_email": trainee.get("email"),
            "question_ids": [_doc_id(q) for q in questions],
            "start_time": now,
            "end_time": None,
            "duration": exam.get("duration"),
            "time_spent": 0,
            "score": 0,
            "total_questions": len(questions),
            "correct_answers": 0,
            "wrong_answers": 0,
            "unanswered": len(questions),
            "points_earned": 0,
            "points_possible": 0,
            "is_passed": False,
            "rating": None,
            "answers": {},
            "status": AttemptStatus.IN_PROGRESS.value,
            "created_at": now,
            "updated_at": now,
        }

        ok, _, error = await self.db.create_document(
            COLLECTIONS['cbt_exam_attempts'], attempt, document_id=attempt_id
        )
        if not ok:
            return False, None, f"Failed to start attempt: {error}"

        logger.info(f"Trainee {trainee_id} started exam {exam_id} ({len(questions)} questions)")
        return True, attempt, None

    async def _finish_attempt(
        self,
        attempt: Dict[str, Any],
        answers: Dict[str, str],
        status: str,
        now: Optional[datetime] = None
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        now = now or datetime.now(timezone.utc)
        questions = await self.get_attempt_questions(attempt, include_answers=True)
        result = score_answers(questions, answers)

        found, exam, _ = await self.get_exam(attempt.get("exam_id"))
        passing_score = (exam or {}).get("passing_score", settings.EXAM_PASS_MARK) if found else settings.EXAM_PASS_MARK

        start_time = _as_utc(attempt.get("start_time"))
        time_spent = int((now - start_time).total_seconds()) if start_time else 0

        updates = {
            "answers": answers,
            "end_time": now,
            "time_spent": max(time_spent, 0),
            "score": result.score,
            "total_questions": result.total_questions,
            "correct_answers": result.correct,
            "wrong_answers": result.wrong,
            "unanswered": result.unanswered,
            "points_earned": result.points_earned,
            "points_possible": result.points_possible,
            "is_passed": is_passing(result.score, passing_score),
            "rating": performance_rating(result.score),
            "question_results": [r.model_dump() for r in result.question_results],
            "status": status,
        }

        ok, error = await self.db.update_document(COLLECTIONS['cbt_exam_attempts'], _doc_id(attempt), updates)
        if not ok:
            return False, None, f"Failed to save attempt: {error}"

        summary = hide_question_results({**attempt, **updates}, exam if found else None)
        return True, summary, None

    async def submit_attempt(self, attempt_id: str, trainee_id: str, answers: Any) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        try:
            normalized = normalize_answers(answers)
        except ValueError as e:
            return False, None, str(e)

        success, attempt, error = await self.get_attempt(attempt_id)
        if not success:
            return False, None, error
        if attempt.get("trainee_id") != trainee_id:
            return False, None, "Attempt belongs to another trainee"
        if attempt.get("status") != AttemptStatus.IN_PROGRESS.value:
            return False, None, f"Attempt is already {attempt.get('status')}"

        ok, summary, error = await self._finish_attempt(attempt, normalized, AttemptStatus.COMPLETED.value)
        if ok:
            logger.info(f"Attempt {attempt_id} submitted: {summary['score']}% ({summary['rating']})")
        return ok, summary, error

    async def abandon_attempt(
        self,
        attempt_id: str,
        trainee_id: Optional[str] = None,
        answers: Any = None,
        now: Optional[datetime] = None
    ) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, attempt, error = await self.get_attempt(attempt_id)
        if not success:
            return False, None, error
        if trainee_id and attempt.get("trainee_id") != trainee_id:
            return False, None, "Attempt belongs to another trainee"
        if attempt.get("status") != AttemptStatus.IN_PROGRESS.value:
            return False, None, f"Attempt is already {attempt.get('status')}"

        try:
            normalized = normalize_answers(answers) if answers is not None else dict(attempt.get("answers") or {})
        except ValueError as e:
            return False, None, str(e)

        return await self._finish_attempt(attempt, normalized, AttemptStatus.ABANDONED.value, now)

    async def save_progress(self, attempt_id: str, trainee_id: str, answers: Any) -> Tuple[bool, Optional[str]]:
        """Persist answers of an unfinished attempt so it can be resumed."""
        try:
            normalized = normalize_answers(answers)
        except ValueError as e:
            return False, str(e)

        success, attempt, error = await self.get_attempt(attempt_id)
        if not success:
            return False, error
        if attempt.get("trainee_id") != trainee_id:
            return False, "Attempt belongs to another trainee"
        if attempt.get("status") != AttemptStatus.IN_PROGRESS.value:
            return False, f"Attempt is already {attempt.get('status')}"

        merged = {**(attempt.get("answers") or {}), **normalized}
        return await self.db.update_document(COLLECTIONS['cbt_exam_attempts'], attempt_id, {"answers": merged})

    async def grade_attempt(self, attempt_id: str, score: int, graded_by: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        if score < 0 or score > 100:
            return False, None, "Score must be between 0 and 100"

        success, attempt, error = await self.get_attempt(attempt_id)
        if not success:
            return False, None, error
        if attempt.get("status") not in FINISHED_STATUSES:
            return False, None, "Only finished attempts can be graded"

        found, exam, _ = await self.get_exam(attempt.get("exam_id"))
        passing_score = exam.get("passing_score", settings.EXAM_PASS_MARK) if found else settings.EXAM_PASS_MARK

        updates = {
            "auto_score": attempt.get("auto_score", attempt.get("score")),
            "score": score,
            "is_passed": is_passing(score, passing_score),
            "rating": performance_rating(score),
            "status": AttemptStatus.GRADED.value,
            "graded_by": graded_by,
            "graded_at": datetime.now(timezone.utc),
        }
        ok, error = await self.db.update_document(COLLECTIONS['cbt_exam_attempts'], attempt_id, updates)
        if not ok:
            return False, None, error
        return True, {**attempt, **updates}, None

    async def get_exam_results(self, exam_id: str) -> Dict[str, Any]:
        """Aggregate the finished attempts of an exam."""
        attempts = [a for a in await self.list_attempts(exam_id=exam_id) if a.get("status") in FINISHED_STATUSES]
        scores = [int(a.get("score") or 0) for a in attempts]
        passed = sum(1 for a in attempts if a.get("is_passed"))

        distribution: Dict[str, int] = {}
        for attempt in attempts:
            rating = attempt.get("rating") or performance_rating(int(attempt.get("score") or 0))
            distribution[rating] = distribution.get(rating, 0) + 1

        return {
            "exam_id": exam_id,
            "total_attempts": len(attempts),
            "completed": sum(1 for a in attempts if a.get("status") != AttemptStatus.ABANDONED.value),
            "abandoned": sum(1 for a in attempts if a.get("status") == AttemptStatus.ABANDONED.value),
            "passed": passed,
            "failed": len(attempts) - passed,
            "pass_rate": round(passed / len(attempts) * 100, 2) if attempts else 0,
            "average_score": round(sum(scores) / len(scores), 2) if scores else 0,
            "highest_score": max(scores) if scores else 0,
            "lowest_score": min(scores) if scores else 0,
            "rating_distribution": distribution,
            "attempts": attempts,
        }

    async def abandon_stale_attempts(self, now: Optional[datetime] = None) -> int:
        """Abandon in-progress attempts that ran past their duration plus the grace period."""
        now = now or datetime.now(timezone.utc)
        grace = timedelta(minutes=settings.STALE_ATTEMPT_GRACE_MINUTES)
        abandoned = 0

        for attempt in await self.list_attempts(status=AttemptStatus.IN_PROGRESS.value):
            start_time = _as_utc(attempt.get("start_time"))
            if not start_time:
                continue
            deadline = start_time + timedelta(minutes=int(attempt.get("duration") or 0)) + grace
            if now <= deadline:
                continue

            ok, _, error = await self.abandon_attempt(_doc_id(attempt), now=now)
            if ok:
                abandoned += 1
            else:
                logger.warning(f"Could not abandon stale attempt {_doc_id(attempt)}: {error}")

        return abandoned


cbt_service = CbtService()
