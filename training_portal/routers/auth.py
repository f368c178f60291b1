"""
Authentication & account routes.

- Login: email + password via the Firebase REST endpoint. Returns id_token + profile.
- Admin accounts are created by an existing admin.
- Trainee / staff / resource person sign-up lives in the registration router.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import httpx
from fastapi import APIRouter, HTTPException, status, Depends

from ..models.user import AdminCreate, EmailPasswordLogin, ForgotPasswordRequest, UserRole, UserStatus
from ..auth.firebase_auth import firebase_auth
from ..auth.dependencies import get_current_user, require_admin
from ..database.database_service import database_service
from ..database.collections import COLLECTIONS
from ..services.registration_service import registration_service
from ..core.config import settings

logger = logging.getLogger("training_portal.routers.auth")
router = APIRouter(prefix="/api/auth", tags=["authentication"])


# ──────────────────────────────────────────────────────────────────────────────
# Utilities
# ──────────────────────────────────────────────────────────────────────────────

async def _sign_in_with_password(email: str, password: str) -> Dict[str, Any]:
    """
    Server-side password verification using Firebase REST API.
    Returns {idToken, refreshToken, expiresIn, localId, ...}
    """
    if not settings.FIREBASE_WEB_API_KEY:
        raise HTTPException(status_code=500, detail="Missing FIREBASE_WEB_API_KEY")
    url = (
        "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
        f"?key={settings.FIREBASE_WEB_API_KEY}"
    )
    payload = {"email": email, "password": password, "returnSecureToken": True}
    async with httpx.AsyncClient(timeout=15.0) as client:
        resp = await client.post(url, json=payload, headers={"Content-Type": "application/json"})
    if resp.status_code != 200:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return resp.json()


# ──────────────────────────────────────────────────────────────────────────────
# Login / logout
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/login", response_model=dict)
async def login_email_password(body: EmailPasswordLogin) -> Dict[str, Any]:
    """Login with email + password; works for every role."""
    try:
        logger.info("Login attempt: %s", body.email)

        token_data = await _sign_in_with_password(body.email, body.password)
        uid = token_data.get("localId")
        if not uid:
            raise HTTPException(status_code=400, detail="Login failed: missing uid")

        _, profile, _ = await database_service.get_document(COLLECTIONS["users"], uid)
        profile = profile or {}

        status_val = str(profile.get("status", UserStatus.ACTIVE.value)).lower()
        if status_val in ("suspended", "inactive"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Account is {status_val}. Please contact administrator."
            )

        return {
            "message": "login successful",
            "id_token": token_data.get("idToken"),
            "token_type": "Bearer",
            "refresh_token": token_data.get("refreshToken"),
            "expires_in": token_data.get("expiresIn", "3600"),
            "uid": uid,
            "email": body.email,
            "role": profile.get("role"),
            "status": status_val,
            "profile": profile,
        }

    except HTTPException:
        raise
    except Exception:
        logger.exception("Email/password login failed")
        raise HTTPException(status_code=400, detail="Login validation failed")


@router.post("/logout", response_model=dict)
async def logout(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Revoke refresh tokens so other sessions are signed out too."""
    try:
        await firebase_auth.revoke_refresh_tokens(current_user["uid"])
    except Exception:
        logger.warning("Token revocation failed for %s", current_user.get("uid"), exc_info=True)
    return {"message": "logged out"}


@router.post("/forgot-password", response_model=dict)
async def forgot_password(body: ForgotPasswordRequest) -> Dict[str, Any]:
    await registration_service.request_password_reset(body.email)
    return {"message": "If the email is registered, a reset link has been sent"}


# ──────────────────────────────────────────────────────────────────────────────
# Admin accounts
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/register/admin", response_model=dict)
async def register_admin(body: AdminCreate, current_user: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    available, message = await registration_service.check_email_available(body.email)
    if not available:
        raise HTTPException(status_code=400, detail=message)

    try:
        firebase_user = await firebase_auth.create_user(
            email=body.email,
            password=body.password,
            display_name=f"{body.first_name} {body.last_name}",
        )
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Registration failed: {str(e)}")

    uid = firebase_user["uid"]
    now = datetime.now(timezone.utc)
    profile = {
        "id": uid,
        "email": body.email.lower(),
        "first_name": body.first_name,
        "last_name": body.last_name,
        "phone": body.phone,
        "role": UserRole.ADMIN.value,
        "status": UserStatus.ACTIVE.value,
        "created_by": current_user.get("uid"),
        "created_at": now,
        "updated_at": now,
    }

    try:
        await firebase_auth.set_custom_claims(uid, {"role": UserRole.ADMIN.value})
        ok, _, err = await database_service.create_document(COLLECTIONS["users"], profile, document_id=uid)
        if not ok:
            raise Exception(err)
    except Exception as e:
        try:
            await firebase_auth.delete_user(uid)
        except Exception:
            logger.warning("Rollback Firebase user failed.", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create admin profile: {str(e)}")

    logger.info("Registered admin uid=%s email=%s", uid, body.email)
    return {"message": "Admin registered successfully", "uid": uid, "profile": profile}


# ──────────────────────────────────────────────────────────────────────────────
# Identity
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/me", response_model=dict)
async def get_current_user_info(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Return current user identity and profile info."""
    uid = current_user.get("uid")
    role = current_user.get("role")
    info: Dict[str, Any] = {
        "uid": uid,
        "email": current_user.get("email"),
        "role": role,
    }

    role_collections = {
        UserRole.TRAINEE.value: "trainees",
        UserRole.STAFF.value: "staff",
        UserRole.RESOURCE_PERSON.value: "resource_persons",
    }
    collection = role_collections.get(role, "users")
    ok, profile, _ = await database_service.get_document(COLLECTIONS[collection], uid)
    if ok and profile:
        profile.pop("_doc_id", None)
        info["profile"] = profile
    return info
