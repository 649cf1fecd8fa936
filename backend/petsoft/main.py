import logging
import subprocess
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from petsoft.config import get_settings
from petsoft.database import init_db
from petsoft.routes import auth, payments, pets

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="PetSoft API")


def _build_hash() -> str:
    """Short commit of the checkout, or the start time outside a git tree."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=Path(__file__).resolve().parent,
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=2,
        ).strip()
    except (OSError, subprocess.SubprocessError):
        return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = _build_hash()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Signed cookie carrying the logged-in user id
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="petsoft_session",
    max_age=settings.session_max_age_seconds,
    same_site="lax",
    https_only=settings.session_https_only,
)

# Include routers
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(pets.router, prefix="/api", tags=["pets"])
app.include_router(payments.router, prefix="/api", tags=["payments"])


@app.on_event("startup")
def on_startup():
    init_db()
    if settings.session_secret == "CHANGE_ME_IN_PRODUCTION":
        logger.warning("SESSION_SECRET is not set; using the development default.")
    logger.info(f"PetSoft API started (build {BUILD_HASH})")


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "PetSoft API", "build_hash": BUILD_HASH, "status": "healthy"}


@app.get("/")
def root():
    return {"message": "PetSoft API"}
