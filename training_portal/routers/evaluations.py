from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin, require_trainee
from ..services.evaluation_service import evaluation_service

logger = logging.getLogger("training_portal.routers.evaluations")

router = APIRouter(prefix="/api/evaluations", tags=["evaluations"])

QuestionType = Literal["yes_no", "single_choice", "expression", "rating"]


class EvaluationQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, description="Question shown to trainees")
    type: QuestionType = Field("yes_no")
    options: List[str] = Field(default_factory=list, description="Choices for single choice questions")
    is_published: bool = Field(False, description="Visible to trainees")


class EvaluationQuestionUpdateRequest(BaseModel):
    question: Optional[str] = None
    type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    is_published: Optional[bool] = None


class EvaluationAnswer(BaseModel):
    question_id: str
    answer: Any = None


class EvaluationSubmitRequest(BaseModel):
    responses: List[EvaluationAnswer] = Field(..., min_length=1)


def _status_for(error: Optional[str]) -> int:
    return 404 if error and "not found" in error.lower() else 400


@router.get("/questions")
async def list_questions(current_user: dict = Depends(get_current_user)):
    """Admins see drafts too; everyone else only published questions."""
    published_only = current_user.get("role") != "admin"
    questions = await evaluation_service.list_questions(published_only=published_only)
    return {"success": True, "questions": questions, "count": len(questions)}


@router.post("/questions")
async def create_question(request: EvaluationQuestionRequest, current_user: dict = Depends(require_admin)):
    try:
        success, question_id, error = await evaluation_service.create_question(
            request.model_dump(), created_by=current_user.get("uid")
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "question_id": question_id, "message": "Evaluation question created successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating evaluation question: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/questions/{question_id}")
async def update_question(question_id: str, request: EvaluationQuestionUpdateRequest, current_user: dict = Depends(require_admin)):
    success, error = await evaluation_service.update_question(question_id, request.model_dump(exclude_unset=True))
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Evaluation question updated successfully"}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: str, current_user: dict = Depends(require_admin)):
    success, error = await evaluation_service.delete_question(question_id)
    if not success:
        raise HTTPException(status_code=_status_for(error), detail=error)
    return {"success": True, "message": "Evaluation question deleted successfully"}


@router.get("/status")
async def submission_status(current_user: dict = Depends(require_trainee)):
    return {"success": True, **await evaluation_service.get_submission_status(current_user["uid"])}


@router.post("/responses")
async def submit_responses(request: EvaluationSubmitRequest, current_user: dict = Depends(require_trainee)):
    try:
        success, saved, error = await evaluation_service.submit_responses(
            current_user, [r.model_dump() for r in request.responses]
        )
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "saved": saved, "message": "Evaluation submitted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting evaluation for {current_user.get('uid')}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/responses")
async def list_responses(
    question_id: Optional[str] = Query(None),
    trainee_id: Optional[str] = Query(None),
    current_user: dict = Depends(require_admin)
):
    responses = await evaluation_service.list_responses(question_id=question_id, trainee_id=trainee_id)
    return {"success": True, "responses": responses, "count": len(responses)}


@router.get("/summary")
async def evaluation_summary(current_user: dict = Depends(require_admin)):
    return {"success": True, "questions": await evaluation_service.get_summary()}
