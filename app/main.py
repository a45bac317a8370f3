import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import all models to ensure they're registered with SQLAlchemy Base
# This is needed for relationships between models in different files
from . import (
    models,  # noqa: F401
    models_assessment,  # noqa: F401
    models_audit,  # noqa: F401
    models_billing,  # noqa: F401
    models_help,  # noqa: F401
    models_library,  # noqa: F401
    models_notification,  # noqa: F401
    models_session_note,  # noqa: F401
)
from .config import APP_NAME
from .csrf import CSRF_COOKIE_NAME, CSRFMiddleware, generate_csrf_token, set_csrf_cookie
from .database import Base, engine
from .domain.assessments.router import router as assessments_router
from .domain.audit.router import router as audit_router
from .domain.billing.router import router as billing_router
from .domain.clients.router import router as clients_router
from .domain.documents.router import router as documents_router
from .domain.help_guides.router import router as help_guides_router
from .domain.library.router import router as library_router
from .domain.notes.router import router as notes_router
from .domain.notifications.router import router as notifications_router
from .domain.portal.router import router as portal_router
from .domain.scheduling.router import router as scheduling_router
from .domain.session_notes.router import router as session_notes_router
from .domain.tasks.router import router as tasks_router
from .routes import ai_router, auth_router, dashboard_router, practice_router, users_router
from .security_headers import SecurityHeadersMiddleware
from .services.ai_service import AIServiceError, AIServiceUnavailable

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Security settings from environment
# CSRF is ENABLED by default for security
# Set CSRF_ENABLED=false only for development/testing
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"
SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    from .rate_limiter import get_redis_client

    if get_redis_client() is not None:
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - rate limiting will count in memory only")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title=f"{APP_NAME} API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors on the Authorization header to 401
    authentication errors
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: invalid Authorization header")
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised ValueError, which is not JSON serializable
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(AIServiceUnavailable)
async def ai_unavailable_handler(request: Request, exc: AIServiceUnavailable):
    logger.warning(f"⚠️ AI unavailable for {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc) or "AI service not configured"})


@app.exception_handler(AIServiceError)
async def ai_error_handler(request: Request, exc: AIServiceError):
    logger.error(f"❌ AI error for {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc) or "AI content generation failed"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"⚠️ Invalid value for {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    elapsed_ms = (time.time() - start) * 1000
    if response.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

if CSRF_ENABLED:
    app.add_middleware(CSRFMiddleware)
    logger.info("CSRF protection enabled")
else:
    logger.info("CSRF protection disabled")


# CORS Configuration
# For production with credentials (cookies), we need specific origins
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,  # Enable credentials for session and CSRF cookies
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Token-Expired"],
)

# Routes
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(practice_router)
app.include_router(dashboard_router)
app.include_router(clients_router)
app.include_router(documents_router)
app.include_router(scheduling_router)
app.include_router(tasks_router)
app.include_router(notes_router)
app.include_router(session_notes_router)
app.include_router(ai_router)
app.include_router(assessments_router)
app.include_router(billing_router)
app.include_router(notifications_router)
app.include_router(audit_router)
app.include_router(help_guides_router)
app.include_router(library_router)
app.include_router(portal_router)


@app.get("/")
def root():
    return {"message": f"{APP_NAME} API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity for monitoring"""
    from .rate_limiter import get_redis_client

    redis_client = get_redis_client()
    if redis_client is None:
        return {"status": "degraded", "redis": {"connected": False, "error": "Redis not configured"}}

    try:
        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000
        info = redis_client.info()
        return {
            "status": "healthy",
            "redis": {
                "connected": True,
                "response_time_ms": round(response_time, 2),
                "version": info.get("redis_version", "unknown"),
                "connected_clients": info.get("connected_clients", 0),
            },
        }
    except Exception as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}


@app.get("/api/csrf-token")
async def get_csrf_token(request: Request, response: Response):
    """
    Get a CSRF token for the frontend.
    The token is also set as a cookie.
    Frontend should include this token in X-CSRF-Token header for state-changing requests.
    """
    existing_token = request.cookies.get(CSRF_COOKIE_NAME)

    if existing_token:
        return {"csrf_token": existing_token}

    new_token = generate_csrf_token()
    set_csrf_cookie(response, new_token)
    return {"csrf_token": new_token}
