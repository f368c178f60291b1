# training_portal/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "training-portal-dev")
    FIREBASE_STORAGE_BUCKET: str = os.getenv("FIREBASE_STORAGE_BUCKET", "training-portal-dev.firebasestorage.app")
    FIREBASE_WEB_API_KEY: str = os.getenv("FIREBASE_WEB_API_KEY", "")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )

    # Frontend URL used in email links
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5000")

    # Email (SendGrid)
    SENDGRID_API_KEY: str | None = os.getenv("SENDGRID_API_KEY")
    FROM_EMAIL: str = os.getenv("FROM_EMAIL", "noreply@trainingportal.local")
    FROM_NAME: str = os.getenv("FROM_NAME", "Training Portal")
    EMAIL_MOCK_MODE: bool = os.getenv("EMAIL_MOCK_MODE", "true").lower() == "true"

    # Registration
    VERIFICATION_CODE_TTL_MINUTES: int = int(os.getenv("VERIFICATION_CODE_TTL_MINUTES", "10"))
    # Wrong codes allowed before the code has to be re-requested
    MAX_VERIFICATION_ATTEMPTS: int = int(os.getenv("MAX_VERIFICATION_ATTEMPTS", "5"))
    DEFAULT_NATIONALITY: str = os.getenv("DEFAULT_NATIONALITY", "Nigerian")

    # Generated staff / resource person IDs
    MAX_ID_BATCH: int = int(os.getenv("MAX_ID_BATCH", "100"))

    # CBT
    EXAM_PASS_MARK: int = int(os.getenv("EXAM_PASS_MARK", "50"))
    # Extra minutes past the exam duration before an in-progress attempt is abandoned
    STALE_ATTEMPT_GRACE_MINUTES: int = int(os.getenv("STALE_ATTEMPT_GRACE_MINUTES", "30"))
    SCHEDULER_INTERVAL_MINUTES: int = int(os.getenv("SCHEDULER_INTERVAL_MINUTES", "5"))

    # Uploads
    MAX_VIDEO_SIZE_MB: int = int(os.getenv("MAX_VIDEO_SIZE_MB", "500"))
    MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "25"))


settings = Settings()

# ===== Back-compat aliases (export names used by other modules) =====
# These make imports like `from training_portal.core.config import EXAM_PASS_MARK` work.
EXAM_PASS_MARK = settings.EXAM_PASS_MARK
FRONTEND_URL = settings.FRONTEND_URL
