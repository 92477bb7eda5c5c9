"""
Admin Routes (admin only)

GET /admin/health - Runtime info and table counters
GET /admin/logs/errors - Error log entries (level filter, pagination)
GET /admin/logs/stats - Error statistics by day, level and code
DELETE /admin/logs/cleanup - Delete error logs older than N days
GET /admin/logs/export - Error logs as CSV
GET /admin/audit - Audit trail
GET /admin/analytics - Usage analytics summary
GET /admin/projects/pending - Pending review queue

GET /admin/users - List users
POST /admin/users/create - Create a student, client or admin
POST /admin/users/bulk-archive - Archive several users
POST /admin/users/{user_type}/{user_id}/archive - Archive user
POST /admin/users/{user_type}/{user_id}/restore - Restore archived user
DELETE /admin/users/{user_type}/{user_id} - Permanently delete a student or client

GET /admin/settings/export - All runtime settings
GET /admin/settings/{category} - Settings of one category with metadata
PUT /admin/settings/update - Update settings
POST /admin/settings/import - Import settings (unknown keys skipped)
POST /admin/settings/reset - Restore defaults
"""

import csv
import io
import platform
import sys
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy import text

from capstone import __version__
from capstone.db.sqlite import get_db_session, fetch_all, check_database_connection, like_pattern
from capstone.core.auth import get_current_admin
from capstone.core.config import get_settings
from capstone.core.errors import ValidationError
from capstone.core.security import client_ip
from capstone.services import project_service, user_service
from capstone.services.audit_service import log_audit
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    AdminUserCreate, BulkArchiveRequest, DeleteUserRequest, LogLevel, MessageResponse,
    ProjectListResponse, ProjectResponse, Pagination, SettingsUpdateRequest,
    SettingsImportRequest, SettingsResetRequest, UserType
)

settings = get_settings()

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(get_current_admin)])

STARTED_AT = time.time()
RESET_CONFIRMATION = "RESET_ALL_SETTINGS"


# ============================================================
# SYSTEM HEALTH
# ============================================================

@router.get("/health")
async def system_health():
    """Runtime information plus row counts for the main tables."""
    database_ok = check_database_connection()
    counts = {}
    if database_ok:
        with get_db_session() as db:
            counts = fetch_all(db, """
                SELECT
                    (SELECT COUNT(*) FROM projects) AS projects,
                    (SELECT COUNT(*) FROM projects WHERE status = 'pending') AS pending_projects,
                    (SELECT COUNT(*) FROM students WHERE is_archived = 0) AS students,
                    (SELECT COUNT(*) FROM clients WHERE is_archived = 0) AS clients,
                    (SELECT COUNT(*) FROM student_interests WHERE is_active = 1) AS active_interests,
                    (SELECT COUNT(*) FROM error_logs WHERE created_at >= datetime('now', '-1 day')) AS errors_last_24h,
                    (SELECT COUNT(*) FROM audit_log WHERE created_at >= datetime('now', '-1 day')) AS audit_events_last_24h
            """)[0]

    return {
        "status": "healthy" if database_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": settings.environment,
        "uptime_seconds": int(time.time() - STARTED_AT),
        "python_version": sys.version.split()[0],
        "platform": platform.platform(),
        "database": "connected" if database_ok else "disconnected",
        "counts": counts,
    }


# ============================================================
# ERROR LOGS
# ============================================================

@router.get("/logs/errors")
async def error_logs(
    level: Optional[LogLevel] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0)
):
    where = ""
    params = {"limit": limit, "offset": offset}
    if level:
        where = "WHERE level = :level"
        params["level"] = level.value
    with get_db_session() as db:
        total = db.execute(text(f"SELECT COUNT(*) FROM error_logs {where}"), params).scalar()
        logs = fetch_all(
            db, f"SELECT * FROM error_logs {where} ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset",
            params
        )
    return {
        "logs": logs,
        "pagination": {"total": total, "limit": limit, "offset": offset, "has_more": offset + limit < total},
    }


@router.get("/logs/stats")
async def error_log_stats(days: int = Query(7, ge=1, le=365)):
    """Daily counts by level, top error codes, hourly counts for the last 24 hours."""
    window = f"-{days} days"
    with get_db_session() as db:
        daily = fetch_all(db, """
            SELECT date(created_at) AS day, level, COUNT(*) AS count
            FROM error_logs WHERE created_at >= datetime('now', :window)
            GROUP BY day, level ORDER BY day DESC, level
        """, {"window": window})
        top_codes = fetch_all(db, """
            SELECT error_code, COUNT(*) AS count
            FROM error_logs
            WHERE created_at >= datetime('now', :window) AND error_code IS NOT NULL
            GROUP BY error_code ORDER BY count DESC LIMIT 10
        """, {"window": window})
        hourly = fetch_all(db, """
            SELECT strftime('%Y-%m-%d %H:00', created_at) AS hour, COUNT(*) AS count
            FROM error_logs WHERE created_at >= datetime('now', '-1 day')
            GROUP BY hour ORDER BY hour
        """)
        by_level = fetch_all(db, """
            SELECT level, COUNT(*) AS count FROM error_logs
            WHERE created_at >= datetime('now', :window) GROUP BY level
        """, {"window": window})
    return {
        "days": days,
        "by_level": {row["level"]: row["count"] for row in by_level},
        "daily": daily,
        "top_error_codes": top_codes,
        "hourly_last_24h": hourly,
    }


@router.delete("/logs/cleanup")
async def cleanup_logs(request: Request, days: int = Query(90, ge=1, le=3650),
                       admin: dict = Depends(get_current_admin)):
    """Delete error log entries older than `days`."""
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM error_logs WHERE created_at < datetime('now', :window)"),
            {"window": f"-{days} days"}
        )
        deleted = result.rowcount
        log_audit(db, admin, "logs_cleanup", "error_logs", None, None,
                  {"days": days, "deleted": deleted}, client_ip(request))
    return {"success": True, "deleted": deleted, "older_than_days": days}


EXPORT_COLUMNS = ("id", "created_at", "level", "error_code", "message", "request_method",
                  "request_url", "user_id", "ip_address")


@router.get("/logs/export")
async def export_logs(days: int = Query(30, ge=1, le=365)):
    """Error logs of the last `days` days as a CSV download."""
    with get_db_session() as db:
        logs = fetch_all(db, f"""
            SELECT {', '.join(EXPORT_COLUMNS)} FROM error_logs
            WHERE created_at >= datetime('now', :window)
            ORDER BY created_at DESC, id DESC
        """, {"window": f"-{days} days"})

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(logs)
    filename = f"error-logs-{datetime.now(timezone.utc).strftime('%Y%m%d')}.csv"
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================
# AUDIT & ANALYTICS
# ============================================================

@router.get("/audit")
async def audit_trail(
    action: Optional[str] = Query(None, max_length=100),
    user_type: Optional[UserType] = Query(None),
    entity_type: Optional[str] = Query(None, max_length=50),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0)
):
    where = []
    params = {"limit": limit, "offset": offset}
    if action:
        where.append("action LIKE :action ESCAPE '\\'")
        params["action"] = like_pattern(action)
    if user_type:
        where.append("user_type = :user_type")
        params["user_type"] = user_type.value
    if entity_type:
        where.append("entity_type = :entity_type")
        params["entity_type"] = entity_type
    clause = f"WHERE {' AND '.join(where)}" if where else ""

    with get_db_session() as db:
        total = db.execute(text(f"SELECT COUNT(*) FROM audit_log {clause}"), params).scalar()
        entries = fetch_all(
            db, f"SELECT * FROM audit_log {clause} ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset",
            params
        )
    return {
        "entries": entries,
        "pagination": {"total": total, "limit": limit, "offset": offset, "has_more": offset + limit < total},
    }


@router.get("/analytics")
async def analytics_summary(days: int = Query(30, ge=1, le=365)):
    """Event counts, most viewed/interested projects and popular searches."""
    get_settings_manager().require_feature("enable_analytics", "Analytics are disabled")
    window = f"-{days} days"
    with get_db_session() as db:
        events = fetch_all(db, """
            SELECT event_type, COUNT(*) AS count FROM analytics
            WHERE created_at >= datetime('now', :window)
            GROUP BY event_type ORDER BY count DESC
        """, {"window": window})
        top_projects = fetch_all(db, """
            SELECT p.id, p.title, p.status,
                   (SELECT COUNT(*) FROM student_interests si
                    WHERE si.project_id = p.id AND si.is_active = 1) AS interest_count,
                   (SELECT COUNT(*) FROM analytics a
                    WHERE a.project_id = p.id AND a.event_type = 'project_view'
                      AND a.created_at >= datetime('now', :window)) AS views
            FROM projects p
            ORDER BY interest_count DESC, views DESC, p.id
            LIMIT 10
        """, {"window": window})
        searches = fetch_all(db, """
            SELECT search_query, COUNT(*) AS count FROM analytics
            WHERE event_type = 'search' AND search_query IS NOT NULL
              AND created_at >= datetime('now', :window)
            GROUP BY search_query ORDER BY count DESC LIMIT 10
        """, {"window": window})
        registrations = fetch_all(db, """
            SELECT user_type, COUNT(*) AS count FROM analytics
            WHERE event_type = 'registration' AND created_at >= datetime('now', :window)
            GROUP BY user_type
        """, {"window": window})
    return {
        "days": days,
        "events": {row["event_type"]: row["count"] for row in events},
        "top_projects": top_projects,
        "top_searches": searches,
        "registrations": {row["user_type"]: row["count"] for row in registrations},
    }


@router.get("/projects/pending", response_model=ProjectListResponse)
async def pending_projects():
    with get_db_session() as db:
        projects = fetch_all(
            db, project_service.PROJECT_SELECT + " WHERE p.status = 'pending' ORDER BY p.created_at ASC, p.id ASC"
        )
    return ProjectListResponse(
        projects=[ProjectResponse(**p) for p in projects],
        pagination=Pagination(total=len(projects), limit=len(projects), offset=0, has_more=False)
    )


# ============================================================
# USER MANAGEMENT
# ============================================================

@router.get("/users")
async def list_users(user_type: Optional[UserType] = Query(None), include_archived: bool = Query(False)):
    users = user_service.list_users(user_type.value if user_type else None, include_archived)
    return {"users": users, "counts": {t: len(rows) for t, rows in users.items()}}


@router.post("/users/create", status_code=201)
async def create_user(request: Request, body: AdminUserCreate, admin: dict = Depends(get_current_admin)):
    """Create an account of any type on behalf of a user."""
    user_type = body.user_type.value
    if user_type == "client":
        if not body.organization_name or not body.contact_name:
            raise ValidationError("organization_name and contact_name are required for clients",
                                  code="MISSING_FIELDS")
    elif not body.full_name:
        raise ValidationError("full_name is required", code="MISSING_FIELDS")

    with get_db_session() as db:
        if user_type == "student":
            user_id = user_service.create_student(db, body.email, body.password, body.full_name,
                                                  body.student_number)
        elif user_type == "client":
            user_id = user_service.create_client(db, body.email, body.password,
                                                 body.organization_name, body.contact_name)
        else:
            user_id = user_service.create_admin(body.email, body.password, body.full_name, db=db)
        log_audit(db, admin, "user_created", user_type, user_id, None,
                  {"email": body.email.lower()}, client_ip(request))

    return {"success": True, "message": f"{user_type.capitalize()} account created",
            "user": {"id": user_id, "email": body.email.lower(), "type": user_type}}


@router.post("/users/bulk-archive")
async def bulk_archive(request: Request, body: BulkArchiveRequest, admin: dict = Depends(get_current_admin)):
    get_settings_manager().require_feature("enable_bulk_operations", "Bulk operations are disabled")
    user_type = body.user_type.value
    results = []
    with get_db_session() as db:
        for user_id in dict.fromkeys(body.user_ids):
            if user_type == "admin" and user_id == admin["id"]:
                results.append({"user_id": user_id, "status": "skipped", "reason": "Cannot archive yourself"})
                continue
            result = db.execute(
                text(f"""
                    UPDATE {user_service.table_for(user_type)}
                    SET is_archived = 1, archived_at = CURRENT_TIMESTAMP
                    WHERE id = :id AND is_archived = 0
                """),
                {"id": user_id}
            )
            results.append({"user_id": user_id, "status": "archived" if result.rowcount else "not_found"})
        archived = [r["user_id"] for r in results if r["status"] == "archived"]
        if archived:
            log_audit(db, admin, "users_bulk_archived", user_type, None, None,
                      {"user_ids": archived}, client_ip(request))

    return {
        "success": True,
        "results": results,
        "summary": {"requested": len(results), "archived": len(archived)},
    }


@router.post("/users/{user_type}/{user_id}/archive", response_model=MessageResponse)
async def archive_user(request: Request, user_type: UserType, user_id: int,
                       admin: dict = Depends(get_current_admin)):
    if user_type == UserType.admin and user_id == admin["id"]:
        raise ValidationError("You cannot archive your own account", code="CANNOT_ARCHIVE_SELF")
    with get_db_session() as db:
        user = user_service.set_archived(db, user_type.value, user_id, True)
        log_audit(db, admin, "user_archived", user_type.value, user_id, None,
                  {"email": user["email"]}, client_ip(request))
    return MessageResponse(message="User archived successfully")


@router.post("/users/{user_type}/{user_id}/restore", response_model=MessageResponse)
async def restore_user(request: Request, user_type: UserType, user_id: int,
                       admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        user = user_service.set_archived(db, user_type.value, user_id, False)
        log_audit(db, admin, "user_restored", user_type.value, user_id, None,
                  {"email": user["email"]}, client_ip(request))
    return MessageResponse(message="User restored successfully")


@router.delete("/users/{user_type}/{user_id}", response_model=MessageResponse)
async def delete_user(request: Request, user_type: UserType, user_id: int,
                      body: Optional[DeleteUserRequest] = None,
                      admin: dict = Depends(get_current_admin)):
    """Permanently delete a student or client. Requires confirm_delete."""
    if not body or not body.confirm_delete:
        raise ValidationError("Deletion must be confirmed", code="DELETION_NOT_CONFIRMED")
    with get_db_session() as db:
        user = user_service.delete_user(db, user_type.value, user_id)
        log_audit(db, admin, "user_deleted", user_type.value, user_id,
                  {"email": user["email"], "name": user["name"]}, None, client_ip(request))
    return MessageResponse(message="User permanently deleted")


# ============================================================
# RUNTIME SETTINGS
# ============================================================

@router.get("/settings/export")
async def export_settings():
    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "settings": get_settings_manager().export(),
    }


@router.get("/settings/{category}")
async def settings_category(category: str):
    return {"category": category, "settings": get_settings_manager().get_category_detailed(category)}


@router.put("/settings/update")
async def update_settings(request: Request, body: SettingsUpdateRequest, admin: dict = Depends(get_current_admin)):
    result = get_settings_manager().update_many(body.settings, admin, client_ip(request))
    return {"success": True, "message": f"{len(result['updated'])} setting(s) updated", **result}


@router.post("/settings/import")
async def import_settings(request: Request, body: SettingsImportRequest, admin: dict = Depends(get_current_admin)):
    """Import a flat {key: value} map or an export document grouped by category."""
    flat = {}
    for key, value in body.settings.items():
        if isinstance(value, dict) and key in ("branding", "auth", "features", "rules", "privacy"):
            flat.update(value)
        else:
            flat[key] = value
    result = get_settings_manager().update_many(flat, admin, client_ip(request), skip_unknown=True)
    return {
        "success": True,
        "message": f"{len(result['updated'])} setting(s) imported",
        **result,
    }


@router.post("/settings/reset")
async def reset_settings(request: Request, body: SettingsResetRequest, admin: dict = Depends(get_current_admin)):
    if body.confirm != RESET_CONFIRMATION:
        raise ValidationError(f"Reset must be confirmed with '{RESET_CONFIRMATION}'", code="RESET_NOT_CONFIRMED")
    count = get_settings_manager().reset_all(admin, client_ip(request))
    return {"success": True, "message": "All settings restored to defaults", "count": count}
