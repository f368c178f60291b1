"""
Self-service sign-up.

Trainees: start (email code) -> verify -> complete.
Staff and resource persons: register with an admin-issued ID.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ..models.user import (
    EmailCodeVerification,
    PersonnelRegistration,
    RegistrationStart,
    TraineeRegistration,
    UserRole,
)
from ..services.registration_service import registration_service
from ..services.generated_id_service import generated_id_service

logger = logging.getLogger("training_portal.routers.registration")
router = APIRouter(prefix="/api/registration", tags=["registration"])


class ValidateIdRequest(BaseModel):
    generated_id: str = Field(..., description="Issued staff or resource person ID")


def _public(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k != "_doc_id"}


# ──────────────────────────────────────────────────────────────────────────────
# Trainees
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/trainee/start")
async def start_trainee_registration(body: RegistrationStart):
    """Send a verification code to the trainee's email."""
    try:
        success, error = await registration_service.start_trainee_registration(body.email)
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "message": "Verification code sent"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starting registration for {body.email}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/trainee/verify")
async def verify_trainee_email(body: EmailCodeVerification):
    try:
        success, error = await registration_service.verify_email_code(body.email, body.code)
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {"success": True, "message": "Email verified"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/trainee/complete")
async def complete_trainee_registration(body: TraineeRegistration):
    """Create the trainee account once the email is verified."""
    try:
        success, trainee, error = await registration_service.complete_trainee_registration(body)
        if not success:
            raise HTTPException(status_code=400, detail=error)
        return {
            "success": True,
            "message": "Registration complete",
            "tag_number": trainee["tag_number"],
            "trainee": _public(trainee),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing registration for {body.email}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ──────────────────────────────────────────────────────────────────────────────
# Staff / resource persons
# ──────────────────────────────────────────────────────────────────────────────

async def _register_personnel(role: UserRole, body: PersonnelRegistration):
    try:
        success, record, error = await registration_service.register_personnel(role, body)
        if not success:
            status_code = 404 if error == "ID does not exist" else 400
            raise HTTPException(status_code=status_code, detail=error)
        return {
            "success": True,
            "message": f"{role.value.replace('_', ' ').title()} registered successfully",
            "uid": record["uid"],
            "generated_id": record["generated_id"],
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error registering {role.value} {body.email}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/staff")
async def register_staff(body: PersonnelRegistration):
    return await _register_personnel(UserRole.STAFF, body)


@router.post("/resource-person")
async def register_resource_person(body: PersonnelRegistration):
    return await _register_personnel(UserRole.RESOURCE_PERSON, body)


# ──────────────────────────────────────────────────────────────────────────────
# Pre-flight checks
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/email-available")
async def email_available(email: str = Query(..., description="Email to check")):
    available, message = await registration_service.check_email_available(email)
    return {"email": email.strip().lower(), "available": available, "message": message}


@router.post("/validate-id")
async def validate_id(body: ValidateIdRequest):
    """Check an ID before the registration form is submitted. Does not reserve it."""
    generated_id = body.generated_id.strip().upper()
    valid, message = await generated_id_service.validate_id_availability(generated_id)
    return {"generated_id": generated_id, "valid": valid, "message": message}
