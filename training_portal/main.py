from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from training_portal.core.config import FRONTEND_URL
from training_portal.core.scheduler import start_scheduler, stop_scheduler
from training_portal.core.firebase_init import initialize_firebase, get_firebase_status
from training_portal.services.firebase_storage_init import get_bucket_info

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Firebase first
logger.info("🔥 Initializing Firebase for FastAPI app...")
firebase_status = get_firebase_status()
logger.info(f"Firebase status: {firebase_status}")

if not firebase_status['available']:
    success = initialize_firebase()
    if success:
        logger.info("✅ Firebase initialized successfully")
    else:
        logger.warning("⚠️ Firebase initialization failed - app will run without Firebase features")

logger.info("📦 Initializing Firebase Storage...")
storage_info = get_bucket_info()
if storage_info['available']:
    logger.info(f"✅ Storage initialized: {storage_info['bucket_path']}")
else:
    logger.warning(f"⚠️ Storage initialization failed: {storage_info.get('error', 'Unknown error')}")

app = FastAPI(
    title="Training Portal API",
    description="Trainee registration, course content, CBT exams and certificates",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if FRONTEND_URL == "*" else [FRONTEND_URL, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== HOUSEKEEPING SCHEDULER ====================
@app.on_event("startup")
async def startup_event():
    """Start the housekeeping scheduler on app startup"""
    logger.info("🚀 FastAPI startup event triggered")
    start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on app shutdown"""
    logger.info("⛔ FastAPI shutdown event triggered")
    stop_scheduler()

# ==================== END SCHEDULER ====================

def safe_include_router(router_module_path: str, router_name: str = "router"):
    """Safely include a router with error handling"""
    try:
        module = __import__(router_module_path, fromlist=[router_name])
        router = getattr(module, router_name)
        app.include_router(router)
        logger.info(f"✅ Successfully included {router_module_path}")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to include {router_module_path}: {str(e)}", exc_info=True)
        return False

logger.info("Loading routers...")

routers_to_load = [
    ("training_portal.routers.auth", "Authentication"),
    ("training_portal.routers.registration", "Registration"),
    ("training_portal.routers.sponsors", "Sponsors"),
    ("training_portal.routers.trainees", "Trainees"),
    ("training_portal.routers.personnel", "Personnel"),
    ("training_portal.routers.generated_ids", "Generated IDs"),
    ("training_portal.routers.content", "Content"),
    ("training_portal.routers.videos", "Videos"),
    ("training_portal.routers.files", "Files"),
    ("training_portal.routers.cbt", "CBT"),
    ("training_portal.routers.announcements", "Announcements"),
    ("training_portal.routers.messages", "Messages"),
    ("training_portal.routers.notifications", "Notifications"),
    ("training_portal.routers.certificates", "Certificates"),
    ("training_portal.routers.evaluations", "Evaluations"),
    ("training_portal.routers.settings", "Settings"),
    ("training_portal.routers.admin_dashboard", "Admin Dashboard"),
]

successful_routers = []
failed_routers = []

for router_path, router_description in routers_to_load:
    if safe_include_router(router_path):
        successful_routers.append(router_description)
    else:
        failed_routers.append(router_description)

logger.info(f"Successfully loaded routers: {successful_routers}")
if failed_routers:
    logger.warning(f"Failed to load routers: {failed_routers}")

@app.get("/")
async def root():
    firebase_status = get_firebase_status()
    storage_info = get_bucket_info()
    return {
        "message": "Welcome to the Training Portal API",
        "firebase_status": firebase_status,
        "storage_status": storage_info,
        "loaded_routers": successful_routers,
        "failed_routers": failed_routers
    }

@app.get("/health")
async def health_check():
    firebase_status = get_firebase_status()
    storage_info = get_bucket_info()
    return {
        "status": "healthy",
        "firebase_available": firebase_status['available'],
        "storage_available": storage_info['available'],
        "loaded_routers": len(successful_routers),
        "failed_routers": len(failed_routers)
    }
