"""
CBT answer scoring.

Pure functions only: nothing here touches the database, so the same rules
apply to submitted, abandoned and re-scored attempts.

Matching rules:
- answers are trimmed and compared case-insensitively
- an empty answer is "unanswered", never wrong
- boolean questions (true_false, or a correct answer of true/false/yes/no)
  accept "yes" for "true" and "no" for "false"
- fill_blank questions accept any of the comma-separated alternatives
"""

import math
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from ..core.config import EXAM_PASS_MARK

NOT_ANSWERED = "Not answered"

BOOLEAN_VALUES = {"true", "false", "yes", "no"}
BOOLEAN_SYNONYMS = {
    "true": {"true", "yes"},
    "false": {"false", "no"},
}

RATING_BANDS = [
    (90, "Excellent"),
    (80, "Very Good"),
    (70, "Good"),
    (60, "Satisfactory"),
    (50, "Pass"),
]


class QuestionResult(BaseModel):
    question_id: str
    question: Optional[str] = None
    user_answer: str
    correct_answer: str
    is_correct: bool
    points: int = 0


class ScoreResult(BaseModel):
    total_questions: int = 0
    correct: int = 0
    wrong: int = 0
    unanswered: int = 0
    points_earned: int = 0
    points_possible: int = 0
    score: int = 0  # percentage of questions answered correctly
    question_results: List[QuestionResult] = Field(default_factory=list)


def normalize_answer(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_boolean_question(question_type: Optional[str], correct_answer: Any) -> bool:
    return question_type == "true_false" or normalize_answer(correct_answer).lower() in BOOLEAN_VALUES


def is_answer_correct(question_type: Optional[str], submitted: Any, correct: Any) -> bool:
    """Return True when ``submitted`` matches ``correct`` for the given question type."""
    user = normalize_answer(submitted).lower()
    expected = normalize_answer(correct).lower()

    if not user:
        return False

    if is_boolean_question(question_type, correct):
        return user == expected or user in BOOLEAN_SYNONYMS.get(expected, set())

    if question_type == "fill_blank":
        alternatives = [a.strip() for a in expected.split(",") if a.strip()]
        return user in alternatives

    return user == expected


def _points(question: Mapping[str, Any]) -> int:
    points = question.get("points")
    if points is None:
        return 1
    try:
        return max(int(points), 0)
    except (TypeError, ValueError):
        return 1


def score_answers(questions: Iterable[Mapping[str, Any]], answers: Optional[Mapping[str, Any]]) -> ScoreResult:
    """
    Score a set of answers against the questions they belong to.

    Args:
        questions: question documents with ``id``, ``question_type``,
            ``correct_answer`` and optionally ``points``
        answers: mapping of question id to the submitted answer

    Returns:
        ScoreResult with counts, points, percentage and per-question detail
    """
    answers = answers or {}
    result = ScoreResult()

    for question in questions:
        question_id = str(question.get("id"))
        submitted = normalize_answer(answers.get(question_id))
        correct_answer = normalize_answer(question.get("correct_answer"))
        points = _points(question)

        result.total_questions += 1
        result.points_possible += points

        if not submitted:
            result.unanswered += 1
            is_correct = False
        elif is_answer_correct(question.get("question_type"), submitted, correct_answer):
            result.correct += 1
            result.points_earned += points
            is_correct = True
        else:
            result.wrong += 1
            is_correct = False

        result.question_results.append(QuestionResult(
            question_id=question_id,
            question=question.get("question"),
            user_answer=submitted or NOT_ANSWERED,
            correct_answer=correct_answer,
            is_correct=is_correct,
            points=points if is_correct else 0,
        ))

    if result.total_questions:
        # half-up, so 12.5% reports as 13
        result.score = int(math.floor(result.correct / result.total_questions * 100 + 0.5))

    return result


def performance_rating(percentage: float) -> str:
    for threshold, label in RATING_BANDS:
        if percentage >= threshold:
            return label
    return "Fail"


def is_passing(percentage: float, passing_score: float = EXAM_PASS_MARK) -> bool:
    return percentage >= passing_score


def pick_random_questions(questions: List[Dict[str, Any]], count: int, rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    """Shuffle and take at most ``count`` questions; a non-positive count takes them all."""
    rng = rng or random.Random()
    pool = list(questions)
    rng.shuffle(pool)
    if count and count > 0:
        return pool[:count]
    return pool
