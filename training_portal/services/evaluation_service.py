from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from collections import Counter
import logging
import uuid

from ..database.database_service import database_service, sort_documents
from ..database.collections import COLLECTIONS

logger = logging.getLogger(__name__)

QUESTION_TYPES = ("yes_no", "single_choice", "expression", "rating")
RATING_SCALE = range(1, 6)
EDITABLE_FIELDS = {"question", "type", "options", "is_published"}


def normalize_answer(question: Dict[str, Any], answer: Any) -> Tuple[Optional[Any], Optional[str]]:
    """
    Check one answer against its question type.

    Returns (normalized_answer, error). yes/no answers are stored lower case,
    ratings as int and free text stripped.
    """
    question_type = question.get("type")
    text = "" if answer is None else str(answer).strip()
    if not text:
        return None, f"Question '{question.get('question')}' needs an answer"

    if question_type == "yes_no":
        if text.lower() not in ("yes", "no"):
            return None, "Yes/no questions take 'yes' or 'no'"
        return text.lower(), None

    if question_type == "single_choice":
        options = question.get("options") or []
        if text not in options:
            return None, f"'{text}' is not one of the options"
        return text, None

    if question_type == "rating":
        try:
            rating = int(text)
        except ValueError:
            return None, "Ratings must be a whole number from 1 to 5"
        if rating not in RATING_SCALE:
            return None, "Ratings must be a whole number from 1 to 5"
        return rating, None

    return text, None


class EvaluationService:
    """Course evaluation questionnaire: admin-authored questions, one answer per trainee per question."""

    def __init__(self):
        self.db = database_service

    # ===== Questions =====

    @staticmethod
    def _validate_question(data: Dict[str, Any]) -> Optional[str]:
        if not str(data.get("question") or "").strip():
            return "Question text is required"
        if data.get("type") not in QUESTION_TYPES:
            return f"Invalid question type: {data.get('type')}"
        if data.get("type") == "single_choice" and len([o for o in data.get("options") or [] if o]) < 2:
            return "Single choice questions need at least two options"
        return None

    async def create_question(self, data: Dict[str, Any], created_by: Optional[str] = None) -> Tuple[bool, Optional[str], Optional[str]]:
        error = self._validate_question(data)
        if error:
            return False, None, error

        question_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        question = {
            "id": question_id,
            "question": data["question"].strip(),
            "type": data["type"],
            "options": (data.get("options") or []) if data["type"] == "single_choice" else [],
            "is_published": bool(data.get("is_published", False)),
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        success, doc_id, error = await self.db.create_document(
            COLLECTIONS['evaluation_questions'], question, document_id=question_id
        )
        if not success:
            return False, None, f"Failed to create question: {error}"
        logger.info(f"Evaluation question created: {question_id} ({data['type']})")
        return True, doc_id, None

    async def get_question(self, question_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        success, question, _ = await self.db.get_document(COLLECTIONS['evaluation_questions'], question_id)
        if not success or not question:
            return False, None, "Evaluation question not found"
        return True, question, None

    async def list_questions(self, published_only: bool = False) -> List[Dict[str, Any]]:
        """Questions in authoring order (oldest first)."""
        filters = [("is_published", "==", True)] if published_only else None
        success, questions, error = await self.db.query_documents(COLLECTIONS['evaluation_questions'], filters)
        if not success:
            logger.error(f"Failed to list evaluation questions: {error}")
            return []
        return sort_documents(questions, "created_at")

    async def update_question(self, question_id: str, data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        success, question, error = await self.get_question(question_id)
        if not success:
            return False, error

        updates = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        if not updates:
            return False, "No valid fields to update"
        error = self._validate_question({**question, **updates})
        if error:
            return False, error
        return await self.db.update_document(COLLECTIONS['evaluation_questions'], question_id, updates)

    async def delete_question(self, question_id: str) -> Tuple[bool, Optional[str]]:
        """Delete a question. Responses already given keep their copy of the question text."""
        success, _, error = await self.get_question(question_id)
        if not success:
            return False, error
        return await self.db.delete_document(COLLECTIONS['evaluation_questions'], question_id)

    # ===== Responses =====

    async def _answered_question_ids(self, trainee_id: str) -> set:
        success, responses, _ = await self.db.query_documents(
            COLLECTIONS['evaluation_responses'], [("trainee_id", "==", trainee_id)]
        )
        return {r.get("question_id") for r in responses} if success else set()

    async def get_submission_status(self, trainee_id: str) -> Dict[str, Any]:
        """Whether the trainee has answered, and which published questions are still open to them."""
        answered = await self._answered_question_ids(trainee_id)
        published = await self.list_questions(published_only=True)
        pending = [q["id"] for q in published if q["id"] not in answered]
        return {
            "has_submitted": bool(answered),
            "pending_question_ids": pending,
        }

    async def submit_responses(
        self,
        trainee: Dict[str, Any],
        responses: List[Dict[str, Any]]
    ) -> Tuple[bool, int, Optional[str]]:
        """
        Store a trainee's answers.

        Every published question the trainee has not answered yet must be
        answered in the same submission; earlier answers cannot be changed.

        Returns:
            (success, responses_saved, error_message)
        """
        trainee_id = trainee["uid"]
        answers: Dict[str, Any] = {}
        for item in responses:
            question_id = item.get("question_id")
            if not question_id:
                return False, 0, "Each response needs a question_id"
            if question_id in answers:
                return False, 0, f"Question {question_id} answered twice"
            answers[question_id] = item.get("answer")

        published = {q["id"]: q for q in await self.list_questions(published_only=True)}
        answered = await self._answered_question_ids(trainee_id)

        for question_id in answers:
            if question_id in answered:
                return False, 0, "Evaluation already submitted for this question"
            if question_id not in published:
                return False, 0, f"Evaluation question {question_id} is not open"

        pending = [qid for qid in published if qid not in answered]
        if not pending:
            return False, 0, "No evaluation questions to answer"
        missing = [qid for qid in pending if qid not in answers]
        if missing:
            return False, 0, f"{len(missing)} question(s) still need an answer"

        documents = []
        for question_id in pending:
            question = published[question_id]
            answer, error = normalize_answer(question, answers[question_id])
            if error:
                return False, 0, error
            documents.append((question, answer))

        now = datetime.now(timezone.utc)
        saved = 0
        for question, answer in documents:
            response_id = str(uuid.uuid4())
            ok, _, error = await self.db.create_document(
                COLLECTIONS['evaluation_responses'],
                {
                    "id": response_id,
                    "trainee_id": trainee_id,
                    "trainee_name": trainee.get("name"),
                    "trainee_email": trainee.get("email"),
                    "question_id": question["id"],
                    "question": question.get("question"),
                    "question_type": question.get("type"),
                    "answer": answer,
                    "submitted_at": now,
                },
                document_id=response_id
            )
            if not ok:
                logger.error(f"Failed to save evaluation response of {trainee_id} to {question['id']}: {error}")
                return False, saved, f"Failed to save responses: {error}"
            saved += 1

        logger.info(f"Trainee {trainee_id} submitted {saved} evaluation response(s)")
        return True, saved, None

    async def list_responses(self, question_id: Optional[str] = None, trainee_id: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = []
        if question_id:
            filters.append(("question_id", "==", question_id))
        if trainee_id:
            filters.append(("trainee_id", "==", trainee_id))
        success, responses, error = await self.db.query_documents(
            COLLECTIONS['evaluation_responses'], filters or None, order_by="submitted_at", descending=True
        )
        if not success:
            logger.error(f"Failed to list evaluation responses: {error}")
            return []
        return responses

    async def get_summary(self) -> List[Dict[str, Any]]:
        """Per-question answer counts, plus the average for rating questions."""
        responses = await self.list_responses()
        by_question: Dict[str, List[Dict[str, Any]]] = {}
        for response in responses:
            by_question.setdefault(response.get("question_id"), []).append(response)

        summary = []
        for question in await self.list_questions():
            answers = [r.get("answer") for r in by_question.get(question["id"], [])]
            entry = {
                "question_id": question["id"],
                "question": question.get("question"),
                "type": question.get("type"),
                "total_responses": len(answers),
            }
            if question.get("type") != "expression":
                entry["counts"] = {str(k): v for k, v in sorted(Counter(answers).items(), key=lambda kv: str(kv[0]))}
            if question.get("type") == "rating" and answers:
                entry["average"] = round(sum(int(a) for a in answers) / len(answers), 2)
            summary.append(entry)
        return summary


evaluation_service = EvaluationService()
