from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional
from pydantic import BaseModel, Field
import logging

from ..auth.dependencies import get_current_user, require_admin
from ..services.certificate_service import certificate_service

logger = logging.getLogger("training_portal.routers.certificates")

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


class IssueCertificatesRequest(BaseModel):
    trainee_ids: List[str] = Field(..., min_length=1, description="Trainees to certify")
    title: str = Field(..., min_length=1, description="Certificate title, e.g. the programme name")
    require_pass: bool = Field(False, description="Skip trainees without a passed exam")


class RevokeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


@router.post("/issue")
async def issue_certificates(request: IssueCertificatesRequest, current_user: dict = Depends(require_admin)):
    try:
        result = await certificate_service.issue_certificates(
            request.trainee_ids, request.title, issued_by=current_user.get("uid"), require_pass=request.require_pass
        )
        return {
            "success": True,
            "issued_count": len(result["issued"]),
            "skipped_count": len(result["skipped"]),
            **result,
        }
    except Exception as e:
        logger.error(f"Error issuing certificates: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/")
async def list_certificates(
    trainee_id: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    """Trainees only ever see their own certificates."""
    if current_user.get("role") == "trainee":
        trainee_id = current_user["uid"]
    certificates = await certificate_service.list_certificates(trainee_id)
    return {"success": True, "certificates": certificates, "count": len(certificates)}


@router.get("/verify/{certificate_id}")
async def verify_certificate(certificate_id: str):
    """Public check that a certificate id is genuine."""
    certificate = await certificate_service.get_certificate(certificate_id)
    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return {
        "valid": not certificate.get("is_revoked"),
        "certificate_id": certificate["id"],
        "trainee_name": certificate.get("trainee_name"),
        "tag_number": certificate.get("tag_number"),
        "title": certificate.get("title"),
        "issued_at": certificate.get("issued_at"),
        "revoked_reason": certificate.get("revoked_reason"),
    }


@router.post("/{certificate_id}/revoke")
async def revoke_certificate(certificate_id: str, request: RevokeRequest, current_user: dict = Depends(require_admin)):
    success, error = await certificate_service.revoke_certificate(certificate_id, request.reason)
    if not success:
        status_code = 404 if error == "Certificate not found" else 400
        raise HTTPException(status_code=status_code, detail=error)
    return {"success": True, "message": "Certificate revoked"}
