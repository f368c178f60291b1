from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Iterable, Optional
from .firebase_auth import firebase_auth
from ..models.user import UserRole
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)

# Roles that act on trainee records for the training centre
PERSONNEL_ROLES = [UserRole.ADMIN.value, UserRole.STAFF.value, UserRole.RESOURCE_PERSON.value]


def _role_value(role) -> str:
    return role.value if isinstance(role, UserRole) else str(role)


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """
    Verify the Firebase ID token and return its claims.
    The role comes from the custom claim set at registration.
    Raises 401 if the token is invalid.
    """
    try:
        user_data = await firebase_auth.verify_token(credentials.credentials)

        if not user_data:
            logger.warning("[Auth] Token verification failed - invalid token")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        logger.info(f"[Auth] ✅ {user_data.get('email')} ({user_data.get('role') or 'no role'})")
        return user_data
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[Auth] ❌ Authentication error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Authentication failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(required_roles: Iterable):
    """Dependency factory; accepts role names or UserRole members."""
    allowed = [_role_value(r) for r in required_roles]

    def role_checker(current_user: dict = Depends(get_current_user)):
        user_role = current_user.get("role")
        if user_role not in allowed:
            logger.warning(f"[Auth] Role '{user_role}' not in {allowed}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {allowed}, current role: {user_role}"
            )
        return current_user
    return role_checker


# Role-specific dependencies
async def require_admin(current_user: dict = Depends(get_current_user)):
    user_role = current_user.get("role")

    if user_role != UserRole.ADMIN.value:
        logger.warning(f"[Auth] Admin access denied: user role '{user_role}' is not admin")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Admin access required. Current role: {user_role}"
        )
    return current_user


async def require_staff_or_admin(current_user: dict = Depends(get_current_user)):
    role = current_user.get("role")

    if role not in (UserRole.ADMIN.value, UserRole.STAFF.value):
        logger.warning(f"[Auth] Staff/Admin access denied: user role '{role}'")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Staff or Admin access required. Current role: {role}"
        )
    return current_user


require_trainee = require_role([UserRole.TRAINEE])
require_personnel = require_role(PERSONNEL_ROLES)


def check_self_or_admin(current_user: dict, owner_id: Optional[str], admin_roles: Iterable = PERSONNEL_ROLES) -> dict:
    """
    Ownership rule for trainee data.

    The owner always passes. Anyone else needs one of ``admin_roles``; by default
    the personnel roles (admin, staff, resource person), who work on every
    trainee's records.
    """
    if owner_id and current_user.get("uid") == owner_id:
        return current_user
    if current_user.get("role") in [_role_value(r) for r in admin_roles]:
        return current_user

    logger.warning(f"[Auth] {current_user.get('uid')} ({current_user.get('role')}) denied access to data of {owner_id}")
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only access your own data"
    )


async def require_self_or_admin(trainee_id: str, current_user: dict = Depends(get_current_user)):
    """Route dependency for paths carrying ``{trainee_id}``."""
    return check_self_or_admin(current_user, trainee_id)
