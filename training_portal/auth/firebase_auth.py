from firebase_admin import auth
import logging
from typing import Optional
from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

class FirebaseAuth:
    def __init__(self):
        if not is_firebase_available():
            if not initialize_firebase():
                logger.warning("Firebase initialization failed - Auth calls will fail until it is configured")

    async def verify_token(self, token: str) -> Optional[dict]:
        try:
            decoded_token = auth.verify_id_token(token)
            return decoded_token
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    async def create_user(self, email: str, password: str, display_name: str = None) -> dict:
        try:
            user = auth.create_user(
                email=email,
                password=password,
                display_name=display_name
            )
            return {
                "uid": user.uid,
                "email": user.email,
            }
        except Exception as e:
            raise Exception(f"User creation failed: {e}")

    async def set_custom_claims(self, uid: str, claims: dict):
        try:
            auth.set_custom_user_claims(uid, claims)
        except Exception as e:
            raise Exception(f"Setting custom claims failed: {e}")

    async def get_user_by_email(self, email: str):
        try:
            return auth.get_user_by_email(email)
        except Exception:
            return None

    async def delete_user(self, uid: str):
        """Delete a user from Firebase Auth"""
        try:
            auth.delete_user(uid)
        except Exception as e:
            raise Exception(f"User deletion failed: {e}")

    async def update_user(self, uid: str, **kwargs):
        """Update user properties in Firebase Auth"""
        try:
            auth.update_user(uid, **kwargs)
        except Exception as e:
            raise Exception(f"User update failed: {e}")

    async def revoke_refresh_tokens(self, uid: str):
        """Sign the user out everywhere"""
        try:
            auth.revoke_refresh_tokens(uid)
        except Exception as e:
            raise Exception(f"Token revocation failed: {e}")

    async def generate_password_reset_link(self, email: str) -> Optional[str]:
        try:
            return auth.generate_password_reset_link(email)
        except Exception as e:
            logger.warning(f"Password reset link generation failed for {email}: {e}")
            return None

firebase_auth = FirebaseAuth()
