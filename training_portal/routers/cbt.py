"""
CBT (computer based test) routes.

Questions and exams are managed by admins and staff.
Trainees start, save, submit or abandon their own attempts.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import check_self_or_admin, get_current_user, require_staff_or_admin, require_trainee
from ..models.database_models import AttemptStatus, QuestionType
from ..services.cbt_service import cbt_service

logger = logging.getLogger("training_portal.routers.cbt")

router = APIRouter(prefix="/api/cbt", tags=["cbt"])


# ──────────────────────────────────────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────────────────────────────────────

class QuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, description="Question text")
    question_type: QuestionType = Field(QuestionType.MULTIPLE_CHOICE)
    options: List[str] = Field(default_factory=list, description="Choices for multiple choice questions")
    correct_answer: str = Field(..., min_length=1)
    exam_id: Optional[str] = Field(None, description="Bind to one exam; empty puts it in the shared bank")
    subject: Optional[str] = None
    topic: Optional[str] = None
    points: int = Field(1, ge=0)
    order_index: int = 0
    difficulty: str = Field("medium", description="easy, medium or hard")
    is_active: bool = True


class QuestionUpdateRequest(BaseModel):
    question: Optional[str] = None
    question_type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    exam_id: Optional[str] = None
    subject: Optional[str] = None
    topic: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    order_index: Optional[int] = None
    difficulty: Optional[str] = None
    is_active: Optional[bool] = None


class BulkQuestionRequest(BaseModel):
    questions: List[QuestionRequest] = Field(..., min_length=1)


class ExamRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    duration: int = Field(..., ge=1, description="Minutes")
    total_questions: int = Field(0, ge=0, description="Questions drawn per attempt; 0 means all")
    passing_score: int = Field(50, ge=0, le=100, description="Pass mark in percent")
    subjects: List[str] = Field(default_factory=list, description="Bank subjects to draw from")
    randomize_questions: bool = True
    show_results: bool = True
    sponsor_id: Optional[str] = None
    is_active: bool = True


class ExamUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=1)
    total_questions: Optional[int] = Field(None, ge=0)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    subjects: Optional[List[str]] = None
    randomize_questions: Optional[bool] = None
    show_results: Optional[bool] = None
    sponsor_id: Optional[str] = None
    is_active: Optional[bool] = None


AnswersPayload = Union[Dict[str, Optional[str]], List[Dict[str, Any]]]


class AnswersRequest(BaseModel):
    answers: AnswersPayload = Field(
        default_factory=dict,
        description="{question_id: answer} or [{question_id, answer}]"
    )


class AbandonRequest(BaseModel):
    answers: Optional[AnswersPayload] = None


class GradeRequest(BaseModel):
    score: int = Field(..., ge=0, le=100, description="Final score in percent")


def _status_for(error: Optional[str]) -> int:
    return 404 if error and "not found" in error.lower() else 400


def _dump(model: BaseModel, **kwargs) -> Dict[str, Any]:
    return model.model_dump(mode="json", **kwargs)


# ──────────────────────────────────────────────────────────────────────────────
# Questions
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/questions")
async def create_question(request: QuestionRequest, current_user: dict = Depends(require_staff_or_admin)):
    try:
        success, question_id, error = await cbt_service.create_question(_dump(request), created_by=current_user.get("uid"))
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "question_id": question_id, "message": "Question created successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/questions/bulk")
async def bulk_create_questions(request: BulkQuestionRequest, current_user: dict = Depends(require_staff_or_admin)):
    result = await cbt_service.bulk_create_questions(
        [_dump(q) for q in request.questions], created_by=current_user.get("uid")
    )
    return {"success": not result["errors"], **result}


@router.get("/questions")
async def list_questions(
    subject: Optional[str] = Query(None),
    exam_id: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    current_user: dict = Depends(require_staff_or_admin)
):
    questions = await cbt_service.list_questions(subject=subject, exam_id=exam_id, include_inactive=include_inactive)
    return {"success": True, "questions": questions, "count": len(questions)}


@router.get("/questions/{question_id}")
async def get_question(question_id: str, current_user: dict = Depends(require_staff_or_admin)):
    success, question, error = await cbt_service.get_question(question_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "question": question}


@router.put("/questions/{question_id}")
async def update_question(question_id: str, request: QuestionUpdateRequest, current_user: dict = Depends(require_staff_or_admin)):
    success, error = await cbt_service.update_question(question_id, _dump(request, exclude_unset=True))
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Question updated successfully"}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: str, current_user: dict = Depends(require_staff_or_admin)):
    success, error = await cbt_service.delete_question(question_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Question deleted successfully"}


# ──────────────────────────────────────────────────────────────────────────────
# Exams
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/exams")
async def create_exam(request: ExamRequest, current_user: dict = Depends(require_staff_or_admin)):
    try:
        success, exam_id, error = await cbt_service.create_exam(_dump(request), created_by=current_user.get("uid"))
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "exam_id": exam_id, "message": "Exam created successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/exams")
async def list_exams(
    sponsor_id: Optional[str] = Query(None),
    active_only: bool = Query(False),
    current_user: dict = Depends(get_current_user)
):
    if current_user.get("role") == "trainee":
        sponsor_id = current_user.get("sponsor_id")
        active_only = True
    exams = await cbt_service.list_exams(sponsor_id=sponsor_id, active_only=active_only)
    return {"success": True, "exams": exams, "count": len(exams)}


@router.get("/exams/active")
async def get_active_exam(current_user: dict = Depends(get_current_user)):
    """The exam currently open to the caller's sponsor."""
    sponsor_id = current_user.get("sponsor_id") if current_user.get("role") == "trainee" else None
    exam = await cbt_service.get_active_exam(sponsor_id)
    if not exam:
        raise HTTPException(status_code=404, detail="No active exam")

    response = {"success": True, "exam": exam}
    if current_user.get("role") == "trainee":
        response["has_taken"] = await cbt_service.has_taken_exam(current_user["uid"], exam.get("id"))
    return response


@router.get("/exams/{exam_id}")
async def get_exam(exam_id: str, current_user: dict = Depends(get_current_user)):
    success, exam, error = await cbt_service.get_exam(exam_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    return {"success": True, "exam": exam}


@router.put("/exams/{exam_id}")
async def update_exam(exam_id: str, request: ExamUpdateRequest, current_user: dict = Depends(require_staff_or_admin)):
    success, error = await cbt_service.update_exam(exam_id, _dump(request, exclude_unset=True))
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Exam updated successfully"}


@router.delete("/exams/{exam_id}")
async def delete_exam(exam_id: str, current_user: dict = Depends(require_staff_or_admin)):
    success, error = await cbt_service.delete_exam(exam_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Exam deleted successfully"}


@router.get("/exams/{exam_id}/questions")
async def get_exam_questions(exam_id: str, current_user: dict = Depends(require_staff_or_admin)):
    success, _, error = await cbt_service.get_exam(exam_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    questions = await cbt_service.get_exam_questions(exam_id)
    return {"success": True, "questions": questions, "count": len(questions)}


@router.get("/exams/{exam_id}/results")
async def get_exam_results(exam_id: str, current_user: dict = Depends(require_staff_or_admin)):
    success, exam, error = await cbt_service.get_exam(exam_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    results = await cbt_service.get_exam_results(exam_id)
    return {"success": True, "exam": exam, **results}


@router.get("/exams/{exam_id}/has-taken")
async def has_taken_exam(exam_id: str, current_user: dict = Depends(require_trainee)):
    return {"exam_id": exam_id, "has_taken": await cbt_service.has_taken_exam(current_user["uid"], exam_id)}


@router.get("/exams/{exam_id}/my-attempt")
async def get_my_attempt(exam_id: str, current_user: dict = Depends(require_trainee)):
    attempt = await cbt_service.get_trainee_attempt(current_user["uid"], exam_id)
    if not attempt:
        raise HTTPException(status_code=404, detail="No attempt found")
    return {"success": True, "attempt": await cbt_service.trainee_view(attempt)}


# ──────────────────────────────────────────────────────────────────────────────
# Attempts
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/exams/{exam_id}/start")
async def start_attempt(exam_id: str, current_user: dict = Depends(require_trainee)):
    """Start or resume the caller's attempt; questions come back without answers."""
    try:
        trainee = {
            "uid": current_user["uid"],
            "name": current_user.get("name"),
            "email": current_user.get("email"),
        }
        success, attempt, error = await cbt_service.start_attempt(exam_id, trainee)
        if not success:
            raise HTTPException(status_code=_status_for(error), detail=error)

        questions = await cbt_service.get_attempt_questions(attempt)
        return {
            "success": True,
            "attempt": attempt,
            "questions": questions,
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starting exam {exam_id} for {current_user.get('uid')}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/attempts")
async def list_attempts(
    exam_id: Optional[str] = Query(None),
    trainee_id: Optional[str] = Query(None),
    status: Optional[AttemptStatus] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    if current_user.get("role") == "trainee":
        trainee_id = current_user["uid"]
    elif current_user.get("role") not in ("admin", "staff"):
        raise HTTPException(status_code=403, detail="Staff or Admin access required")
    attempts = await cbt_service.list_attempts(exam_id=exam_id, trainee_id=trainee_id, status=status.value if status else None)
    if current_user.get("role") == "trainee":
        attempts = await cbt_service.trainee_views(attempts)
    return {"success": True, "attempts": attempts, "count": len(attempts)}


@router.get("/attempts/{attempt_id}")
async def get_attempt(attempt_id: str, current_user: dict = Depends(get_current_user)):
    success, attempt, error = await cbt_service.get_attempt(attempt_id)
    if not success:
        raise HTTPException(status_code=404, detail=error)
    check_self_or_admin(current_user, attempt.get("trainee_id"))
    if current_user.get("role") == "trainee":
        attempt = await cbt_service.trainee_view(attempt)
    return {"success": True, "attempt": attempt}


@router.put("/attempts/{attempt_id}/progress")
async def save_progress(attempt_id: str, request: AnswersRequest, current_user: dict = Depends(require_trainee)):
    success, error = await cbt_service.save_progress(attempt_id, current_user["uid"], request.answers)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Progress saved"}


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt(attempt_id: str, request: AnswersRequest, current_user: dict = Depends(require_trainee)):
    try:
        success, summary, error = await cbt_service.submit_attempt(attempt_id, current_user["uid"], request.answers)
        if not success:
            raise HTTPException(status_code=_status_for(error), detail=error)
        return {"success": True, "result": summary}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting attempt {attempt_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/attempts/{attempt_id}/abandon")
async def abandon_attempt(attempt_id: str, request: AbandonRequest, current_user: dict = Depends(require_trainee)):
    success, summary, error = await cbt_service.abandon_attempt(
        attempt_id, trainee_id=current_user["uid"], answers=request.answers
    )
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "result": summary}


@router.post("/attempts/{attempt_id}/grade")
async def grade_attempt(attempt_id: str, request: GradeRequest, current_user: dict = Depends(require_staff_or_admin)):
    success, attempt, error = await cbt_service.grade_attempt(attempt_id, request.score, graded_by=current_user.get("uid"))
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "attempt": attempt}
