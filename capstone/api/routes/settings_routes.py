"""
Public Settings Routes

GET /settings/branding - Site title, tagline, colors, footer
GET /settings/business-rules - Interest/favorite limits and related rules
"""

from fastapi import APIRouter

from capstone.services.settings_service import get_settings_manager

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/branding")
async def branding():
    return {"branding": get_settings_manager().branding()}


@router.get("/business-rules")
async def business_rules():
    return {"rules": get_settings_manager().business_rules()}
