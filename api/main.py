"""
Zoom -> GoHighLevel registration bridge
FastAPI Application Entry Point

Run with the server script (configures logging first):

    python scripts/serve.py            # host/port from settings
    python scripts/serve.py --reload   # development

Endpoints:
    POST /zoom-webhook   Zoom event subscription target
    POST /ghl-webhook    GHL workflow "Webhook" action target
"""
# Load environment variables from .env file first, before any imports
from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from api.routes import zoom, ghl, admin
from api.services.errors import BridgeError, DuplicateEvent
from config.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup: open the database once so schema problems surface immediately
    try:
        from api.services.event_ledger import get_event_ledger
        from api.services.contact_store import get_contact_store
        from api.services.global_settings import get_global_settings_store
        get_event_ledger()
        get_contact_store()
        get_global_settings_store()
        logger.info(f"Database ready at {settings.db_path}")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    if not settings.ghl_configured:
        logger.warning("GHL_ACCESS_TOKEN / GHL_LOCATION_ID not set, registrations cannot be resolved")
    if not settings.zoom_secret_token:
        logger.warning("ZOOM_SECRET_TOKEN not set, URL validation will fail")

    yield  # Application runs here

    # Shutdown: close pooled GHL connections
    from api.services.ghl_client import close_ghl_client
    await close_ghl_client()
    logger.info("GHL client closed")


app = FastAPI(
    title="Zoom GHL Bridge",
    description="Reconciles Zoom registrations into GoHighLevel contacts, tags and workflows",
    version="0.1.0",
    lifespan=lifespan
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


# Include routers
app.include_router(zoom.router)
app.include_router(ghl.router)
app.include_router(admin.router)


@app.exception_handler(DuplicateEvent)
async def duplicate_event_handler(request: Request, exc: DuplicateEvent):
    """Duplicates were already handled; the sender gets a success."""
    return JSONResponse(status_code=200, content={"message": "Duplicate event"})


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError):
    """Map bridge errors onto the 400/401/500 responses webhook senders understand."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert validation errors to 400 with clear messages."""
    errors = exc.errors()

    # Sanitize errors for JSON serialization (convert bytes to string)
    sanitized_errors = []
    for error in errors:
        sanitized = dict(error)
        if "input" in sanitized and isinstance(sanitized["input"], bytes):
            sanitized["input"] = sanitized["input"].decode("utf-8", errors="replace")
        sanitized_errors.append(sanitized)

    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "detail": sanitized_errors}
    )


@app.get("/health")
async def health_check():
    """Health check endpoint that verifies critical configuration."""
    from config.settings import settings

    checks = {
        "ghl_configured": settings.ghl_configured,
        "zoom_secret_configured": bool(settings.zoom_secret_token),
        "workflow_enabled": settings.workflow_enabled,
        "signature_verification": settings.verify_zoom_signature,
    }

    healthy = checks["ghl_configured"] and checks["zoom_secret_configured"]

    return {
        "status": "healthy" if healthy else "degraded",
        "service": "zoom-ghl-bridge",
        "checks": checks,
    }


@app.get("/health/services")
async def service_health_check():
    """
    Get real-time status of GHL endpoints and the local database.

    Returns:
    - overall_status: healthy/degraded/critical
    - services: per-service status with last check time
    - degradation_events: recent fallback usage (last 24h), e.g. search 403 -> create
    - critical_issues: services requiring immediate attention
    """
    from api.services.service_health import get_service_health
    return get_service_health().get_summary()


@app.get("/")
async def root():
    return {"message": "Zoom GHL Bridge", "version": "0.1.0"}
