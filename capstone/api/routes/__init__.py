"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from capstone.api.routes.auth_routes import router as auth_router
from capstone.api.routes.project_routes import router as project_router
from capstone.api.routes.student_routes import router as student_router
from capstone.api.routes.client_routes import router as client_router
from capstone.api.routes.admin_routes import router as admin_router
from capstone.api.routes.gallery_routes import router as gallery_router
from capstone.api.routes.settings_routes import router as settings_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(project_router)
api_router.include_router(student_router)
api_router.include_router(client_router)
api_router.include_router(admin_router)
api_router.include_router(gallery_router)
api_router.include_router(settings_router)
