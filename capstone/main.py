"""
Capstone Connect - Main Application

FastAPI backend with:
- SQLite for all structured data
- JWT authentication for students, clients and admins
- Runtime settings (branding, feature flags, business rules) in the database
- Static frontend served from /frontend/public when present

Run: uvicorn capstone.main:app --reload
"""

import logging
import os
import time
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse

from capstone import __version__
from capstone.api.routes import api_router
from capstone.core.config import get_settings
from capstone.core.errors import register_exception_handlers
from capstone.core.logger import setup_logging
from capstone.core.security import rate_limit_middleware, security_headers_middleware
from capstone.db.sqlite import init_database, check_database_connection
from capstone.services.settings_service import get_settings_manager

settings = get_settings()
logger = logging.getLogger(__name__)

# Get the project root directory
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
FRONTEND_DIR = os.path.join(PROJECT_ROOT, "frontend", "public")

SLOW_REQUEST_MS = 1000

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="""
    Matchmaking platform for university capstone projects.

    ## Features
    - **Authentication**: JWT (bearer header or cookie) for students, clients and admins
    - **Projects**: Submission, admin review, lifecycle (pending → approved → active → completed)
    - **Students**: Express interest in and favorite projects (configurable limits)
    - **Clients**: Dashboard and project management
    - **Gallery**: Showcase of completed projects
    - **Admin**: Users, settings, audit trail, error logs, analytics
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

register_exception_handlers(app)

# Middleware (last added runs first)
app.middleware("http")(rate_limit_middleware)
app.middleware("http")(security_headers_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Assign a request id, time the request and log the outcome."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    started = time.perf_counter()

    response = await call_next(request)

    duration_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    message = f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms"
    if duration_ms > SLOW_REQUEST_MS:
        logger.warning(f"Slow request: {message}", extra={
            "request_method": request.method,
            "request_url": request.url.path,
            "error_code": "SLOW_REQUEST",
        })
    else:
        logger.info(message)
    return response


# Include API routes
app.include_router(api_router, prefix="/api")

# Serve static files (for any additional assets)
if os.path.exists(FRONTEND_DIR):
    app.mount("/static", StaticFiles(directory=FRONTEND_DIR), name="static")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Configure logging, create tables and seed default settings."""
    if settings.is_production and settings.jwt_secret_key == "change-this-secret":
        raise RuntimeError("JWT_SECRET_KEY must be set in production")

    init_database()
    setup_logging()
    seeded = get_settings_manager().seed_defaults()
    if seeded:
        logger.info(f"Seeded {seeded} default settings")
    logger.info(f"{settings.app_name} {__version__} started ({settings.environment})")


# Serve frontend for root path
@app.get("/", tags=["Frontend"])
async def serve_frontend():
    """Serve the frontend."""
    index_path = os.path.join(FRONTEND_DIR, "index.html")
    if os.path.exists(index_path):
        return FileResponse(index_path)
    return {"status": "healthy", "app": settings.app_name, "message": "Frontend not found. API is running."}


@app.get("/api/health", tags=["Health"])
async def health_check():
    """Liveness and database connectivity."""
    database_ok = check_database_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "database": "connected" if database_ok else "disconnected",
    }
