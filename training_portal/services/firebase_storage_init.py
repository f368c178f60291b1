"""
Firebase Storage initialization and utilities.
Handles bucket setup and storage configuration.
"""

from firebase_admin import storage
import logging
from typing import Optional

from ..core.config import settings
from ..core.firebase_init import initialize_firebase, is_firebase_available

logger = logging.getLogger(__name__)

_storage_bucket = None

def initialize_storage() -> Optional[object]:
    """
    Initialize Firebase Storage bucket.
    Must be called after Firebase Admin SDK initialization.

    Returns:
        Storage bucket object if successful, None otherwise
    """
    global _storage_bucket

    if _storage_bucket is not None:
        return _storage_bucket

    if not is_firebase_available() and not initialize_firebase():
        logger.warning("⚠️ Firebase not initialized - storage unavailable")
        return None

    bucket_name = settings.FIREBASE_STORAGE_BUCKET
    try:
        _storage_bucket = storage.bucket(bucket_name)
        logger.info(f"✅ Firebase Storage initialized: gs://{_storage_bucket.name}")
        return _storage_bucket
    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase Storage: {e}")
        logger.error("Ensure:")
        logger.error("  1. Firebase project has Cloud Storage enabled")
        logger.error("  2. Service account has storage permissions")
        logger.error(f"  3. Bucket name: {bucket_name}")
        return None

def get_storage_bucket() -> Optional[object]:
    """
    Get the Firebase Storage bucket.
    Initializes on first call if not already initialized.
    """
    global _storage_bucket

    if _storage_bucket is None:
        _storage_bucket = initialize_storage()

    return _storage_bucket

def is_storage_available() -> bool:
    """Check if Firebase Storage is available and initialized."""
    return get_storage_bucket() is not None

def get_bucket_info() -> dict:
    """Storage bucket details reported by / and /health."""
    bucket = get_storage_bucket()

    if not bucket:
        return {
            "available": False,
            "bucket_name": settings.FIREBASE_STORAGE_BUCKET,
            "error": "Storage bucket not initialized"
        }

    try:
        return {
            "available": True,
            "bucket_name": bucket.name,
            "bucket_path": f"gs://{bucket.name}",
            "location": getattr(bucket, 'location', 'unknown'),
            "storage_class": getattr(bucket, 'storage_class', 'STANDARD')
        }
    except Exception as e:
        logger.error(f"Error getting bucket info: {e}")
        return {
            "available": False,
            "bucket_name": settings.FIREBASE_STORAGE_BUCKET,
            "error": str(e)
        }
