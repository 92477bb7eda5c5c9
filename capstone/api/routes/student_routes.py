"""
Student Routes

POST /students/interests - Express interest in a project
GET /students/interests - My active interests
DELETE /students/interests/bulk - Withdraw several interests at once
DELETE /students/interests/{project_id} - Withdraw interest (soft)
GET /students/interests/project/{project_id} - Interested students (project owner or admin)
POST /students/favorites - Favorite a project
GET /students/favorites - My favorites
GET /students/favorites/check/{project_id} - Is this project a favorite?
DELETE /students/favorites/{project_id} - Remove a favorite
GET /students/dashboard - Interests, favorites and recommended projects
GET /students/stats - Personal counters and remaining capacity
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from capstone.db.sqlite import get_db_session, fetch_all, fetch_one
from capstone.core.auth import get_current_student, get_client_or_admin
from capstone.core.errors import (
    AuthorizationError, ConflictError, NotFoundError, ValidationError
)
from capstone.core.security import client_ip
from capstone.services import project_service, project_lifecycle as lifecycle
from capstone.services.audit_service import log_audit, log_analytics
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    InterestCreate, BulkWithdrawRequest, FavoriteCreate, MessageResponse
)

router = APIRouter(prefix="/students", tags=["Students"])


def _require_available_project(db, project_id: int) -> dict:
    project = project_service.get_project(db, project_id)
    if not project:
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    if not lifecycle.is_public(project["status"]):
        raise ValidationError(
            "Project is not available for interest",
            code="PROJECT_NOT_AVAILABLE",
            details={"status": project["status"]}
        )
    return project


def _active_interest_count(db, student_id: int) -> int:
    return db.execute(
        text("SELECT COUNT(*) FROM student_interests WHERE student_id = :sid AND is_active = 1"),
        {"sid": student_id}
    ).scalar()


def _favorite_count(db, student_id: int) -> int:
    return db.execute(
        text("SELECT COUNT(*) FROM student_favorites WHERE student_id = :sid"),
        {"sid": student_id}
    ).scalar()


# ============================================================
# INTERESTS
# ============================================================

@router.post("/interests", status_code=201)
async def express_interest(request: Request, interest: InterestCreate,
                           student: dict = Depends(get_current_student)):
    """
    Express interest in an approved or active project.

    Limited to max_student_interests active interests per student.
    """
    settings_manager = get_settings_manager()
    max_interests = settings_manager.max_interests()
    message = interest.message if settings_manager.is_enabled("enable_interest_messages") else None

    with get_db_session() as db:
        project = _require_available_project(db, interest.project_id)

        existing = db.execute(
            text("""
                SELECT id FROM student_interests
                WHERE student_id = :sid AND project_id = :pid AND is_active = 1
            """),
            {"sid": student["id"], "pid": project["id"]}
        ).fetchone()
        if existing:
            raise ConflictError("You have already expressed interest in this project", code="INTEREST_ALREADY_EXISTS")

        current = _active_interest_count(db, student["id"])
        if current >= max_interests:
            raise ValidationError(
                f"You can only express interest in up to {max_interests} projects at a time",
                code="INTEREST_LIMIT_EXCEEDED",
                details={"current_count": current, "max_allowed": max_interests}
            )

        result = db.execute(
            text("""
                INSERT INTO student_interests (student_id, project_id, message)
                VALUES (:sid, :pid, :message)
            """),
            {"sid": student["id"], "pid": project["id"], "message": message}
        )
        interest_id = result.lastrowid
        log_audit(db, student, "interest_expressed", "student_interest", interest_id,
                  None, {"project_id": project["id"]}, client_ip(request))
        log_analytics(db, "interest_expressed", student, project_id=project["id"])

    return {
        "success": True,
        "message": "Interest expressed successfully",
        "interest": {
            "id": interest_id,
            "project_id": project["id"],
            "project_title": project["title"],
            "message": message,
        },
        "interest_count": current + 1,
        "max_allowed": max_interests,
    }


@router.get("/interests")
async def my_interests(student: dict = Depends(get_current_student)):
    """Active interests with project summary, newest first."""
    with get_db_session() as db:
        interests = fetch_all(db, """
            SELECT si.id, si.project_id, si.message, si.expressed_at,
                   p.title, p.status, p.semester_availability, c.organization_name
            FROM student_interests si
            JOIN projects p ON si.project_id = p.id
            JOIN clients c ON p.client_id = c.id
            WHERE si.student_id = :sid AND si.is_active = 1
            ORDER BY si.expressed_at DESC, si.id DESC
        """, {"sid": student["id"]})
    max_interests = get_settings_manager().max_interests()
    return {
        "interests": interests,
        "count": len(interests),
        "max_allowed": max_interests,
        "remaining": max(0, max_interests - len(interests)),
    }


@router.delete("/interests/bulk")
async def bulk_withdraw(request: Request, body: BulkWithdrawRequest,
                        student: dict = Depends(get_current_student)):
    """Withdraw several interests; each project id reports its own outcome."""
    get_settings_manager().require_feature(
        "interest_withdrawal_allowed", "Withdrawing interest is currently disabled"
    )
    results = []
    with get_db_session() as db:
        for project_id in dict.fromkeys(body.project_ids):
            result = db.execute(
                text("""
                    UPDATE student_interests SET is_active = 0, withdrawn_at = CURRENT_TIMESTAMP
                    WHERE student_id = :sid AND project_id = :pid AND is_active = 1
                """),
                {"sid": student["id"], "pid": project_id}
            )
            results.append({
                "project_id": project_id,
                "status": "withdrawn" if result.rowcount else "not_found",
            })
        withdrawn = [r["project_id"] for r in results if r["status"] == "withdrawn"]
        if withdrawn:
            log_audit(db, student, "interests_bulk_withdrawn", "student_interest", None,
                      None, {"project_ids": withdrawn}, client_ip(request))

    return {
        "success": True,
        "results": results,
        "summary": {
            "requested": len(results),
            "withdrawn": len(withdrawn),
            "not_found": len(results) - len(withdrawn),
        },
    }


@router.delete("/interests/{project_id}", response_model=MessageResponse)
async def withdraw_interest(request: Request, project_id: int, student: dict = Depends(get_current_student)):
    """Withdraw interest. The row is kept with is_active = 0."""
    get_settings_manager().require_feature(
        "interest_withdrawal_allowed", "Withdrawing interest is currently disabled"
    )
    with get_db_session() as db:
        interest = fetch_one(db, """
            SELECT id FROM student_interests
            WHERE student_id = :sid AND project_id = :pid AND is_active = 1
        """, {"sid": student["id"], "pid": project_id})
        if not interest:
            raise NotFoundError("No active interest found for this project", code="INTEREST_NOT_FOUND")

        db.execute(
            text("UPDATE student_interests SET is_active = 0, withdrawn_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": interest["id"]}
        )
        log_audit(db, student, "interest_withdrawn", "student_interest", interest["id"],
                  {"is_active": 1}, {"is_active": 0, "project_id": project_id}, client_ip(request))
        log_analytics(db, "interest_withdrawn", student, project_id=project_id)

    return MessageResponse(message="Interest withdrawn successfully")


@router.get("/interests/project/{project_id}")
async def project_interests(project_id: int, user: dict = Depends(get_client_or_admin)):
    """Students interested in a project. Clients only see their own projects."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        if user["type"] == "client" and not project_service.is_owner(project, user):
            raise AuthorizationError("Access denied. You can only view interests for your own projects.",
                                     code="ACCESS_DENIED")
        include_contact = (
            user["type"] == "admin"
            or get_settings_manager().is_enabled("show_student_details_to_clients")
        )
        interests = project_service.get_project_interests(db, project_id, include_contact)

    return {
        "project": {"id": project["id"], "title": project["title"], "status": project["status"]},
        "interests": interests,
        "count": len(interests),
    }


# ============================================================
# FAVORITES
# ============================================================

def _require_favorites_enabled() -> None:
    get_settings_manager().require_feature("enable_student_favorites", "Favorites are currently disabled")


@router.post("/favorites", status_code=201)
async def add_favorite(request: Request, favorite: FavoriteCreate, student: dict = Depends(get_current_student)):
    """Favorite an approved or active project (up to max_student_favorites)."""
    _require_favorites_enabled()
    max_favorites = get_settings_manager().max_favorites()

    with get_db_session() as db:
        project = _require_available_project(db, favorite.project_id)

        existing = db.execute(
            text("SELECT id FROM student_favorites WHERE student_id = :sid AND project_id = :pid"),
            {"sid": student["id"], "pid": project["id"]}
        ).fetchone()
        if existing:
            raise ConflictError("Project is already in your favorites", code="ALREADY_FAVORITED")

        current = _favorite_count(db, student["id"])
        if current >= max_favorites:
            raise ValidationError(
                f"You can only have up to {max_favorites} favorite projects",
                code="FAVORITES_LIMIT_EXCEEDED",
                details={"current_count": current, "max_allowed": max_favorites}
            )

        result = db.execute(
            text("INSERT INTO student_favorites (student_id, project_id) VALUES (:sid, :pid)"),
            {"sid": student["id"], "pid": project["id"]}
        )
        favorite_id = result.lastrowid
        log_audit(db, student, "favorite_added", "student_favorite", favorite_id,
                  None, {"project_id": project["id"]}, client_ip(request))
        log_analytics(db, "favorite_added", student, project_id=project["id"])

    return {
        "success": True,
        "message": "Project added to favorites",
        "favorite": {"id": favorite_id, "project_id": project["id"], "project_title": project["title"]},
        "favorite_count": current + 1,
        "max_allowed": max_favorites,
    }


@router.get("/favorites")
async def my_favorites(student: dict = Depends(get_current_student)):
    """Favorited projects with current status and interest flag."""
    _require_favorites_enabled()
    with get_db_session() as db:
        favorites = fetch_all(db, """
            SELECT sf.id, sf.project_id, sf.created_at AS favorited_at,
                   p.title, p.description, p.status, p.semester_availability,
                   c.organization_name,
                   EXISTS (SELECT 1 FROM student_interests si
                           WHERE si.student_id = sf.student_id AND si.project_id = sf.project_id
                             AND si.is_active = 1) AS has_expressed_interest
            FROM student_favorites sf
            JOIN projects p ON sf.project_id = p.id
            JOIN clients c ON p.client_id = c.id
            WHERE sf.student_id = :sid
            ORDER BY sf.created_at DESC, sf.id DESC
        """, {"sid": student["id"]})
    for favorite in favorites:
        favorite["has_expressed_interest"] = bool(favorite["has_expressed_interest"])
    return {
        "favorites": favorites,
        "count": len(favorites),
        "max_allowed": get_settings_manager().max_favorites(),
    }


@router.get("/favorites/check/{project_id}")
async def check_favorite(project_id: int, student: dict = Depends(get_current_student)):
    with get_db_session() as db:
        row = db.execute(
            text("SELECT id FROM student_favorites WHERE student_id = :sid AND project_id = :pid"),
            {"sid": student["id"], "pid": project_id}
        ).fetchone()
    return {"project_id": project_id, "is_favorite": row is not None}


@router.delete("/favorites/{project_id}", response_model=MessageResponse)
async def remove_favorite(request: Request, project_id: int, student: dict = Depends(get_current_student)):
    _require_favorites_enabled()
    with get_db_session() as db:
        result = db.execute(
            text("DELETE FROM student_favorites WHERE student_id = :sid AND project_id = :pid"),
            {"sid": student["id"], "pid": project_id}
        )
        if not result.rowcount:
            raise NotFoundError("Project is not in your favorites", code="FAVORITE_NOT_FOUND")
        log_audit(db, student, "favorite_removed", "student_favorite", None,
                  {"project_id": project_id}, None, client_ip(request))
        log_analytics(db, "favorite_removed", student, project_id=project_id)

    return MessageResponse(message="Project removed from favorites")


# ============================================================
# DASHBOARD
# ============================================================

@router.get("/dashboard")
async def dashboard(student: dict = Depends(get_current_student)):
    """Profile, active interests, favorites and a few popular open projects."""
    settings_manager = get_settings_manager()
    with get_db_session() as db:
        profile = fetch_one(db, """
            SELECT id, email, full_name, student_number, course, year_level, created_at, last_login
            FROM students WHERE id = :sid
        """, {"sid": student["id"]})
        interests = fetch_all(db, """
            SELECT si.project_id, si.expressed_at, p.title, p.status, c.organization_name
            FROM student_interests si
            JOIN projects p ON si.project_id = p.id
            JOIN clients c ON p.client_id = c.id
            WHERE si.student_id = :sid AND si.is_active = 1
            ORDER BY si.expressed_at DESC, si.id DESC
        """, {"sid": student["id"]})
        favorites = fetch_all(db, """
            SELECT sf.project_id, sf.created_at AS favorited_at, p.title, p.status
            FROM student_favorites sf JOIN projects p ON sf.project_id = p.id
            WHERE sf.student_id = :sid
            ORDER BY sf.created_at DESC, sf.id DESC
        """, {"sid": student["id"]})
        recommended, _ = project_service.search_public_projects(db, limit=5)
        flags = project_service.student_project_flags(db, student["id"])
        recommended = [p for p in recommended if p["id"] not in flags["interests"]]
        project_service.apply_student_flags(recommended, flags)

    max_interests = settings_manager.max_interests()
    return {
        "student": profile,
        "interests": interests,
        "favorites": favorites,
        "recommended_projects": recommended,
        "limits": {
            "max_interests": max_interests,
            "remaining_interests": max(0, max_interests - len(interests)),
            "max_favorites": settings_manager.max_favorites(),
        },
    }


@router.get("/stats")
async def stats(student: dict = Depends(get_current_student)):
    settings_manager = get_settings_manager()
    with get_db_session() as db:
        active = _active_interest_count(db, student["id"])
        withdrawn = db.execute(
            text("SELECT COUNT(*) FROM student_interests WHERE student_id = :sid AND is_active = 0"),
            {"sid": student["id"]}
        ).scalar()
        favorites = _favorite_count(db, student["id"])
        available = db.execute(
            text("SELECT COUNT(*) FROM projects WHERE status IN ('approved', 'active')")
        ).scalar()

    max_interests = settings_manager.max_interests()
    max_favorites = settings_manager.max_favorites()
    return {
        "active_interests": active,
        "withdrawn_interests": withdrawn,
        "favorites": favorites,
        "available_projects": available,
        "max_interests": max_interests,
        "remaining_interests": max(0, max_interests - active),
        "max_favorites": max_favorites,
        "remaining_favorites": max(0, max_favorites - favorites),
    }
