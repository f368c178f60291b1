from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import secrets
import string
import time

from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from .cbt_service import cbt_service

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_certificate_id(timestamp_ms: Optional[int] = None) -> str:
    """CERT-{base36 millisecond timestamp}-{6 random base36 chars}, upper case."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    return f"CERT-{to_base36(timestamp_ms)}-{suffix}".upper()


class CertificateService:
    def __init__(self):
        self.db = database_service
        self.cbt_service = cbt_service

    async def _latest_passing_attempt(self, trainee_id: str) -> Optional[Dict[str, Any]]:
        # list_attempts is newest first
        attempts = await self.cbt_service.list_attempts(trainee_id=trainee_id)
        return next((a for a in attempts if a.get("is_passed")), None)

    async def _has_certificate(self, trainee_id: str, title: str) -> bool:
        success, certificates, _ = await self.db.query_documents(
            COLLECTIONS['certificates'], [("trainee_id", "==", trainee_id), ("title", "==", title)]
        )
        return bool(success and any(not c.get("is_revoked") for c in certificates))

    async def issue_certificates(
        self,
        trainee_ids: List[str],
        title: str,
        issued_by: str,
        require_pass: bool = False
    ) -> Dict[str, Any]:
        """
        Issue one certificate per trainee.

        Returns:
            {"issued": [certificate, ...], "skipped": [{"trainee_id", "reason"}, ...]}
        """
        issued, skipped = [], []

        for trainee_id in dict.fromkeys(trainee_ids):
            found, trainee, _ = await self.db.get_document(COLLECTIONS['trainees'], trainee_id)
            if not found or not trainee:
                skipped.append({"trainee_id": trainee_id, "reason": "Trainee not found"})
                continue

            if await self._has_certificate(trainee_id, title):
                skipped.append({"trainee_id": trainee_id, "reason": "Certificate already issued"})
                continue

            attempt = await self._latest_passing_attempt(trainee_id)
            if require_pass and not attempt:
                skipped.append({"trainee_id": trainee_id, "reason": "No passed exam"})
                continue

            certificate_id = generate_certificate_id()
            name_parts = [trainee.get("first_name"), trainee.get("middle_name"), trainee.get("surname")]
            certificate = {
                "id": certificate_id,
                "trainee_id": trainee_id,
                "trainee_name": " ".join(p for p in name_parts if p),
                "tag_number": trainee.get("tag_number"),
                "sponsor_id": trainee.get("sponsor_id"),
                "title": title,
                "exam_attempt_id": (attempt.get("_doc_id") or attempt.get("id")) if attempt else None,
                "score": attempt.get("score") if attempt else None,
                "issued_by": issued_by,
                "issued_at": datetime.now(timezone.utc),
                "is_revoked": False,
            }
            ok, _, error = await self.db.create_document(
                COLLECTIONS['certificates'], certificate, document_id=certificate_id
            )
            if not ok:
                skipped.append({"trainee_id": trainee_id, "reason": f"Failed to save: {error}"})
                continue
            issued.append(certificate)

        logger.info(f"Issued {len(issued)} certificate(s) '{title}', skipped {len(skipped)}")
        return {"issued": issued, "skipped": skipped}

    async def list_certificates(self, trainee_id: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = [("trainee_id", "==", trainee_id)] if trainee_id else None
        success, certificates, _ = await self.db.query_documents(
            COLLECTIONS['certificates'], filters, order_by="issued_at", descending=True
        )
        return certificates if success else []

    async def get_certificate(self, certificate_id: str) -> Optional[Dict[str, Any]]:
        success, certificate, _ = await self.db.get_document(
            COLLECTIONS['certificates'], (certificate_id or "").strip().upper()
        )
        return certificate if success else None

    async def revoke_certificate(self, certificate_id: str, reason: str) -> Tuple[bool, Optional[str]]:
        certificate = await self.get_certificate(certificate_id)
        if not certificate:
            return False, "Certificate not found"
        if certificate.get("is_revoked"):
            return False, "Certificate is already revoked"
        return await self.db.update_document(
            COLLECTIONS['certificates'],
            certificate["id"],
            {"is_revoked": True, "revoked_reason": reason, "revoked_at": datetime.now(timezone.utc)}
        )


certificate_service = CertificateService()
