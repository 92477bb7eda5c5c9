"""
Gallery Routes - showcase of completed projects

GET /gallery - Approved gallery items (year/category filters, pagination)
GET /gallery/stats/filters - Years and categories for filter menus
GET /gallery/{item_id} - One approved item
GET /gallery/admin/pending - Items awaiting review (admin)
GET /gallery/admin/all - Every item (admin)
GET /gallery/admin/stats/overview - Counts by status, year and category (admin)
POST /gallery/admin/from-project/{project_id} - Create item from a completed project (admin)
POST /gallery/admin/create - Create item manually (admin)
PATCH /gallery/admin/{item_id}/status - Approve / reject item (admin)
PUT /gallery/admin/{item_id} - Edit item (admin)
DELETE /gallery/admin/{item_id} - Delete item (admin)
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import text

from capstone.db.sqlite import get_db_session, fetch_all, fetch_one
from capstone.core.auth import get_optional_user, get_current_admin
from capstone.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from capstone.core.security import client_ip
from capstone.services import project_service, project_lifecycle as lifecycle
from capstone.services.audit_service import log_audit, log_analytics
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    GalleryCreate, GalleryUpdate, GalleryFromProject, GalleryStatusUpdate, GalleryStatus,
    MessageResponse
)

router = APIRouter(prefix="/gallery", tags=["Gallery"])

GALLERY_FIELDS = ("title", "description", "year", "category", "image_urls", "client_name",
                  "team_members", "outcomes")


def _decode(item: Optional[dict]) -> Optional[dict]:
    """image_urls is stored as a JSON array."""
    if item is not None:
        try:
            item["image_urls"] = json.loads(item.get("image_urls") or "[]")
        except ValueError:
            item["image_urls"] = []
    return item


def _require_item(db, item_id: int) -> dict:
    item = fetch_one(db, "SELECT * FROM project_gallery WHERE id = :id", {"id": item_id})
    if not item:
        raise NotFoundError("Gallery item not found", code="GALLERY_ITEM_NOT_FOUND")
    return item


def _public_access(user: Optional[dict]) -> None:
    settings_manager = get_settings_manager()
    settings_manager.require_feature("enable_gallery", "The project gallery is disabled")
    if not user and not settings_manager.is_enabled("public_gallery_visibility"):
        raise AuthenticationError("Please log in to view the gallery", code="LOGIN_REQUIRED")


def _insert_item(db, values: dict, admin: dict, status: str, project_id: int = None) -> int:
    result = db.execute(
        text("""
            INSERT INTO project_gallery (project_id, title, description, year, category, image_urls,
                client_name, team_members, outcomes, status, submitted_by, approved_by, approved_at)
            VALUES (:project_id, :title, :description, :year, :category, :image_urls,
                :client_name, :team_members, :outcomes, :status, :admin_id,
                CASE WHEN :status = 'approved' THEN :admin_id END,
                CASE WHEN :status = 'approved' THEN CURRENT_TIMESTAMP END)
        """),
        {**values, "image_urls": json.dumps(values.get("image_urls") or []),
         "project_id": project_id, "status": status, "admin_id": admin["id"]}
    )
    return result.lastrowid


# ============================================================
# PUBLIC
# ============================================================

@router.get("")
async def list_gallery(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    category: Optional[str] = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Optional[dict] = Depends(get_optional_user)
):
    _public_access(user)
    where = ["status = 'approved'"]
    params = {"limit": limit, "offset": offset}
    if year:
        where.append("year = :year")
        params["year"] = year
    if category:
        where.append("category = :category")
        params["category"] = category
    clause = " AND ".join(where)

    with get_db_session() as db:
        total = db.execute(text(f"SELECT COUNT(*) FROM project_gallery WHERE {clause}"), params).scalar()
        items = fetch_all(db, f"""
            SELECT * FROM project_gallery WHERE {clause}
            ORDER BY year DESC, created_at DESC, id DESC LIMIT :limit OFFSET :offset
        """, params)
        if year or category:
            log_analytics(db, "gallery_filter", user,
                          filter_type="year" if year else "category",
                          filter_value=year if year else category)

    return {
        "items": [_decode(item) for item in items],
        "pagination": {"total": total, "limit": limit, "offset": offset, "has_more": offset + limit < total},
    }


@router.get("/stats/filters")
async def gallery_filters(user: Optional[dict] = Depends(get_optional_user)):
    """Distinct years and categories of approved items, with counts."""
    _public_access(user)
    with get_db_session() as db:
        years = fetch_all(db, """
            SELECT year, COUNT(*) AS count FROM project_gallery
            WHERE status = 'approved' GROUP BY year ORDER BY year DESC
        """)
        categories = fetch_all(db, """
            SELECT category, COUNT(*) AS count FROM project_gallery
            WHERE status = 'approved' AND category IS NOT NULL GROUP BY category ORDER BY category
        """)
    return {"years": years, "categories": categories}


# ============================================================
# ADMIN
# (declared before /{item_id} so the static paths win)
# ============================================================

@router.get("/admin/pending")
async def pending_items(admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        items = fetch_all(db, "SELECT * FROM project_gallery WHERE status = 'pending' ORDER BY created_at, id")
    return {"items": [_decode(item) for item in items], "count": len(items)}


@router.get("/admin/all")
async def all_items(status: Optional[GalleryStatus] = Query(None), admin: dict = Depends(get_current_admin)):
    sql = "SELECT * FROM project_gallery"
    params = {}
    if status:
        sql += " WHERE status = :status"
        params["status"] = status.value
    with get_db_session() as db:
        items = fetch_all(db, sql + " ORDER BY created_at DESC, id DESC", params)
    return {"items": [_decode(item) for item in items], "count": len(items)}


@router.get("/admin/stats/overview")
async def gallery_overview(admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        by_status = fetch_all(db, "SELECT status, COUNT(*) AS count FROM project_gallery GROUP BY status")
        by_year = fetch_all(db, "SELECT year, COUNT(*) AS count FROM project_gallery GROUP BY year ORDER BY year DESC")
        by_category = fetch_all(db, """
            SELECT category, COUNT(*) AS count FROM project_gallery
            WHERE category IS NOT NULL GROUP BY category ORDER BY count DESC
        """)
        completed_not_in_gallery = db.execute(text("""
            SELECT COUNT(*) FROM projects p
            WHERE p.status = 'completed'
              AND NOT EXISTS (SELECT 1 FROM project_gallery g WHERE g.project_id = p.id)
        """)).scalar()

    counts = {status.value: 0 for status in GalleryStatus}
    counts.update({row["status"]: row["count"] for row in by_status})
    return {
        "by_status": counts,
        "total": sum(counts.values()),
        "by_year": by_year,
        "by_category": by_category,
        "completed_projects_not_in_gallery": completed_not_in_gallery,
    }


@router.post("/admin/from-project/{project_id}", status_code=201)
async def add_from_project(request: Request, project_id: int, body: GalleryFromProject,
                           admin: dict = Depends(get_current_admin)):
    """Showcase a completed project. Each project can appear in the gallery once."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        if project["status"] != lifecycle.COMPLETED:
            raise ValidationError("Can only add completed projects to gallery", code="PROJECT_NOT_COMPLETED")

        existing = db.execute(
            text("SELECT id FROM project_gallery WHERE project_id = :pid"), {"pid": project_id}
        ).fetchone()
        if existing:
            raise ConflictError("This project is already in the gallery", code="PROJECT_ALREADY_IN_GALLERY",
                                details={"gallery_item_id": existing[0]})

        completed_on = project["completed_at"] or project["created_at"]
        values = {
            "title": body.gallery_title or project["title"],
            "description": body.gallery_description or project["description"],
            "year": int(str(completed_on)[:4]),
            "category": body.category or project["project_type"],
            "image_urls": body.image_urls,
            "client_name": project["client_org_snapshot"] or project["organization_name"],
            "team_members": body.team_members,
            "outcomes": body.outcomes,
        }
        item_id = _insert_item(db, values, admin, body.status.value, project_id)
        log_audit(db, admin, "gallery_item_created", "gallery", item_id, None,
                  {"project_id": project_id, "title": values["title"]}, client_ip(request))
        item = _require_item(db, item_id)

    return {"success": True, "message": "Project added to gallery successfully", "item": _decode(item)}


@router.post("/admin/create", status_code=201)
async def create_item(request: Request, body: GalleryCreate, admin: dict = Depends(get_current_admin)):
    values = body.model_dump(include=set(GALLERY_FIELDS))
    with get_db_session() as db:
        item_id = _insert_item(db, values, admin, body.status.value)
        log_audit(db, admin, "gallery_item_created", "gallery", item_id, None,
                  {"title": body.title}, client_ip(request))
        item = _require_item(db, item_id)
    return {"success": True, "message": "Gallery item created successfully", "item": _decode(item)}


@router.patch("/admin/{item_id}/status")
async def update_item_status(request: Request, item_id: int, body: GalleryStatusUpdate,
                             admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        item = _require_item(db, item_id)
        db.execute(
            text("""
                UPDATE project_gallery SET status = :status,
                    approved_by = CASE WHEN :status = 'approved' THEN :admin_id ELSE approved_by END,
                    approved_at = CASE WHEN :status = 'approved' THEN CURRENT_TIMESTAMP ELSE approved_at END,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
            """),
            {"status": body.status.value, "admin_id": admin["id"], "id": item_id}
        )
        log_audit(db, admin, f"gallery_item_{body.status.value}", "gallery", item_id,
                  {"status": item["status"]}, {"status": body.status.value}, client_ip(request))
        updated = _require_item(db, item_id)
    return {"success": True, "message": f"Gallery item {body.status.value}", "item": _decode(updated)}


@router.put("/admin/{item_id}")
async def update_item(request: Request, item_id: int, body: GalleryUpdate, admin: dict = Depends(get_current_admin)):
    values = body.model_dump(exclude_unset=True)
    if not values:
        raise ValidationError("No fields to update", code="NO_UPDATES")
    if "image_urls" in values:
        values["image_urls"] = json.dumps(values["image_urls"] or [])

    updates = [f"{field} = :{field}" for field in values]
    updates.append("updated_at = CURRENT_TIMESTAMP")
    with get_db_session() as db:
        item = _require_item(db, item_id)
        db.execute(text(f"UPDATE project_gallery SET {', '.join(updates)} WHERE id = :id"),
                   {**values, "id": item_id})
        log_audit(db, admin, "gallery_item_updated", "gallery", item_id,
                  {field: item.get(field) for field in values}, values, client_ip(request))
        updated = _require_item(db, item_id)
    return {"success": True, "message": "Gallery item updated", "item": _decode(updated)}


@router.delete("/admin/{item_id}", response_model=MessageResponse)
async def delete_item(request: Request, item_id: int, admin: dict = Depends(get_current_admin)):
    with get_db_session() as db:
        item = _require_item(db, item_id)
        db.execute(text("DELETE FROM project_gallery WHERE id = :id"), {"id": item_id})
        log_audit(db, admin, "gallery_item_deleted", "gallery", item_id,
                  {"title": item["title"]}, None, client_ip(request))
    return MessageResponse(message="Gallery item deleted")


# ============================================================
# PUBLIC DETAIL
# ============================================================

@router.get("/{item_id}")
async def get_item(item_id: int, user: Optional[dict] = Depends(get_optional_user)):
    _public_access(user)
    with get_db_session() as db:
        item = fetch_one(db, "SELECT * FROM project_gallery WHERE id = :id AND status = 'approved'", {"id": item_id})
        if not item:
            raise NotFoundError("Gallery item not found", code="GALLERY_ITEM_NOT_FOUND")
        log_analytics(db, "gallery_view", user, project_id=item["project_id"])
    return {"item": _decode(item)}
