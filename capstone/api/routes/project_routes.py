"""
Project Routes

GET /projects - Browse approved/active projects (search, filters, pagination)
GET /projects/admin/pending - Pending review queue (admin)
GET /projects/admin/stats - Project statistics (admin)
GET /projects/client/{client_id} - Projects of one client (that client or admin)
GET /projects/{project_id} - Project details
POST /projects - Submit project (client)
PUT /projects/{project_id} - Edit project (owner while pending/rejected, or admin)
PATCH /projects/{project_id}/status - Approve or reject (admin)
PATCH /projects/{project_id}/complete - Mark completed (admin)
PATCH /projects/{project_id}/toggle - Toggle active/inactive (admin)
POST /projects/{project_id}/phases - Add a follow-on phase (owner or admin)
GET /projects/{project_id}/phases - Project family
GET /projects/{project_id}/with-phases - Project with its family
DELETE /projects/{project_id} - Delete project (owner while pending/rejected, or admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import text

from capstone.db.sqlite import get_db_session, fetch_all
from capstone.core.auth import (
    get_optional_user, get_current_client, get_current_admin, get_client_or_admin
)
from capstone.core.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from capstone.core.security import client_ip
from capstone.services import project_service, project_lifecycle as lifecycle
from capstone.services.audit_service import log_analytics
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    ProjectCreate, ProjectUpdate, ProjectStatusUpdate, ProjectCompleteRequest,
    ProjectResponse, ProjectListResponse, ProjectDetailResponse, ProjectMutationResponse,
    Pagination, Semester, MessageResponse
)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    q: Optional[str] = Query(None, max_length=200, description="Search title, description, skills and tools"),
    semester: Optional[Semester] = Query(None),
    min_interests: Optional[int] = Query(None, ge=0),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Optional[dict] = Depends(get_optional_user)
):
    """List approved and active projects, most popular first."""
    if not user and not get_settings_manager().is_enabled("public_project_visibility"):
        raise AuthenticationError("Please log in to browse projects", code="LOGIN_REQUIRED")

    search = q.strip() if q else None
    with get_db_session() as db:
        projects, total = project_service.search_public_projects(
            db, search=search, semester=semester.value if semester else None,
            min_interests=min_interests, limit=limit, offset=offset
        )
        if user and user["type"] == "student":
            flags = project_service.student_project_flags(db, user["id"])
            project_service.apply_student_flags(projects, flags)

        if search:
            log_analytics(db, "search", user, search_query=search)
        if semester:
            log_analytics(db, "filter", user, filter_type="semester", filter_value=semester.value)

    return ProjectListResponse(
        projects=[ProjectResponse(**p) for p in projects],
        pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + limit < total)
    )


@router.get("/admin/pending", response_model=ProjectListResponse)
async def pending_projects(admin: dict = Depends(get_current_admin)):
    """Projects waiting for review, oldest first."""
    with get_db_session() as db:
        projects = fetch_all(
            db, project_service.PROJECT_SELECT + " WHERE p.status = 'pending' ORDER BY p.created_at ASC, p.id ASC"
        )
    return ProjectListResponse(
        projects=[ProjectResponse(**p) for p in projects],
        pagination=Pagination(total=len(projects), limit=len(projects), offset=0, has_more=False)
    )


@router.get("/admin/stats")
async def project_stats(admin: dict = Depends(get_current_admin)):
    """Status and semester distribution plus interest statistics."""
    with get_db_session() as db:
        by_status = fetch_all(db, "SELECT status, COUNT(*) AS count FROM projects GROUP BY status ORDER BY status")
        by_semester = fetch_all(db, """
            SELECT semester_availability, COUNT(*) AS count FROM projects
            WHERE status IN ('approved', 'active') GROUP BY semester_availability
        """)
        interest_stats = fetch_all(db, """
            SELECT COUNT(*) AS total_interests,
                   COUNT(DISTINCT student_id) AS students_with_interests,
                   COUNT(DISTINCT project_id) AS projects_with_interests
            FROM student_interests WHERE is_active = 1
        """)[0]
        recent = fetch_all(db, """
            SELECT COUNT(*) AS count FROM projects WHERE created_at >= datetime('now', '-7 days')
        """)[0]["count"]

    status_counts = {status: 0 for status in lifecycle.ALL_STATUSES}
    status_counts.update({row["status"]: row["count"] for row in by_status})
    return {
        "status_distribution": status_counts,
        "total_projects": sum(status_counts.values()),
        "semester_distribution": {row["semester_availability"]: row["count"] for row in by_semester},
        "interest_statistics": interest_stats,
        "projects_last_7_days": recent,
    }


@router.get("/client/{client_id}", response_model=ProjectListResponse)
async def client_projects(client_id: int, user: dict = Depends(get_client_or_admin)):
    """All projects of one client, any status."""
    if user["type"] == "client" and user["id"] != client_id:
        raise AuthorizationError("Access denied. You can only view your own projects.", code="ACCESS_DENIED")
    with get_db_session() as db:
        projects = fetch_all(
            db, project_service.PROJECT_SELECT + " WHERE p.client_id = :cid ORDER BY p.created_at DESC, p.id DESC",
            {"cid": client_id}
        )
    return ProjectListResponse(
        projects=[ProjectResponse(**p) for p in projects],
        pagination=Pagination(total=len(projects), limit=len(projects), offset=0, has_more=False)
    )


def _require_visible(project: Optional[dict], user: Optional[dict]) -> dict:
    """404 for projects the caller may not see, 401 for anonymous callers when browsing needs a login."""
    if not project or not project_service.can_view(project, user):
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    if not user and not get_settings_manager().is_enabled("public_project_visibility"):
        raise AuthenticationError("Please log in to view projects", code="LOGIN_REQUIRED")
    return project


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(project_id: int, user: Optional[dict] = Depends(get_optional_user)):
    """
    Project details.

    Non-public projects are only visible to their owner and admins (404 otherwise).
    Owners and admins also receive the list of interested students.
    """
    settings_manager = get_settings_manager()
    with get_db_session() as db:
        project = _require_visible(project_service.get_project(db, project_id), user)

        interests = None
        if user and user["type"] == "student":
            flags = project_service.student_project_flags(db, user["id"])
            project_service.apply_student_flags([project], flags)
        elif user and (user["type"] == "admin" or project_service.is_owner(project, user)):
            include_contact = user["type"] == "admin" or settings_manager.is_enabled("show_student_details_to_clients")
            interests = project_service.get_project_interests(db, project_id, include_contact)

        log_analytics(db, "project_view", user, project_id=project_id)

    return ProjectDetailResponse(project=ProjectResponse(**project), interests=interests)


@router.post("", response_model=ProjectMutationResponse, status_code=201)
async def create_project(request: Request, project: ProjectCreate, client: dict = Depends(get_current_client)):
    """Submit a new project. It starts in pending status until an admin reviews it."""
    with get_db_session() as db:
        project_id = project_service.create_project(
            db, client["id"], project.model_dump(), client, client_ip(request)
        )
        created = project_service.get_project(db, project_id)

    return ProjectMutationResponse(
        message="Project submitted successfully and is pending approval",
        project=ProjectResponse(**created)
    )


@router.put("/{project_id}", response_model=ProjectMutationResponse)
async def update_project(request: Request, project_id: int, update: ProjectUpdate,
                         user: dict = Depends(get_client_or_admin)):
    """Edit a project. Editing a rejected project resubmits it for review."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        new_status = project_service.update_project(
            db, project, update.model_dump(exclude_unset=True), user, client_ip(request)
        )
        updated = project_service.get_project(db, project_id)

    message = "Project updated successfully"
    if new_status != project["status"]:
        message = "Project updated and resubmitted for review"
    return ProjectMutationResponse(message=message, project=ProjectResponse(**updated))


@router.patch("/{project_id}/status", response_model=ProjectMutationResponse)
async def review_project(request: Request, project_id: int, review: ProjectStatusUpdate,
                         admin: dict = Depends(get_current_admin)):
    """Approve or reject a pending project."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        project_service.review_project(
            db, project, review.status.value, admin, review.feedback, client_ip(request)
        )
        updated = project_service.get_project(db, project_id)

    return ProjectMutationResponse(
        message=f"Project {review.status.value} successfully",
        project=ProjectResponse(**updated)
    )


@router.patch("/{project_id}/complete", response_model=ProjectMutationResponse)
async def complete_project(request: Request, project_id: int,
                           body: Optional[ProjectCompleteRequest] = None,
                           admin: dict = Depends(get_current_admin)):
    """Mark an approved or active project as completed and snapshot its client details."""
    preserve = body.preserve_client_data if body else True
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        project_service.complete_project(db, project, admin, preserve, client_ip(request))
        updated = project_service.get_project(db, project_id)

    return ProjectMutationResponse(message="Project marked as completed", project=ProjectResponse(**updated))


@router.patch("/{project_id}/toggle", response_model=ProjectMutationResponse)
async def toggle_project(request: Request, project_id: int, admin: dict = Depends(get_current_admin)):
    """Switch a project between active and inactive (approved projects become active)."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        new_status = project_service.toggle_project(db, project, admin, client_ip(request))
        updated = project_service.get_project(db, project_id)

    return ProjectMutationResponse(
        message=f"Project {'activated' if new_status == lifecycle.ACTIVE else 'deactivated'} successfully",
        project=ProjectResponse(**updated)
    )


@router.post("/{project_id}/phases", status_code=201)
async def create_phase(request: Request, project_id: int, phase: ProjectCreate,
                       user: dict = Depends(get_client_or_admin)):
    """
    Add a follow-on phase to a project.

    Phases always attach to the root project, inherit its client and start
    in pending status.
    """
    get_settings_manager().require_feature("enable_project_phases", "Project phases are disabled")

    with get_db_session() as db:
        parent = project_service.get_project(db, project_id)
        if not parent:
            raise NotFoundError("Parent project not found", code="PARENT_PROJECT_NOT_FOUND")
        if user["type"] == "client" and not project_service.is_owner(parent, user):
            raise AuthorizationError(
                "Access denied. You can only create phases for your own projects.",
                code="PHASE_ACCESS_DENIED"
            )
        if parent["status"] not in lifecycle.PHASE_PARENT_STATUSES:
            raise ValidationError(
                "Can only create phases for approved, active, or completed projects",
                code="PHASE_INVALID_PARENT_STATUS"
            )

        root_id = parent["parent_project_id"] or parent["id"]
        phase_number = db.execute(
            text(
                "SELECT MAX(phase_number) FROM projects WHERE id = :root OR parent_project_id = :root"
            ),
            {"root": root_id}
        ).scalar() + 1

        phase_id = project_service.create_project(
            db, parent["client_id"], phase.model_dump(), user, client_ip(request),
            parent_project_id=root_id, phase_number=phase_number
        )
        log_analytics(db, "project_phase_created", user, project_id=phase_id,
                      filter_type="parent_project_id", filter_value=root_id)
        created = project_service.get_project(db, phase_id)
        root = project_service.get_project(db, root_id)

    return {
        "message": f"Phase {phase_number} created successfully",
        "phase": ProjectResponse(**created),
        "parent_project": {"id": root["id"], "title": root["title"]},
    }


def _visible_family(family: dict, user: Optional[dict]) -> dict:
    phases = [p for p in family["phases"] if project_service.can_view(p, user)]
    root = family["root_project"]
    if root and not project_service.can_view(root, user):
        root = None
    current = family["current_phase"]
    if current and not project_service.can_view(current, user):
        running = [p for p in phases if lifecycle.is_public(p["status"])]
        current = running[-1] if running else root
    return {
        "root_project": ProjectResponse(**root) if root else None,
        "phases": [ProjectResponse(**p) for p in phases],
        "current_phase": ProjectResponse(**current) if current else None,
        "total_phases": len(phases),
    }


@router.get("/{project_id}/phases")
async def project_phases(project_id: int, user: Optional[dict] = Depends(get_optional_user)):
    """Root project, its phases and the current phase."""
    with get_db_session() as db:
        _require_visible(project_service.get_project(db, project_id), user)
        family = project_service.get_project_family(db, project_id)
        if user:
            log_analytics(db, "project_phases_viewed", user, project_id=project_id)
    return _visible_family(family, user)


@router.get("/{project_id}/with-phases")
async def project_with_phases(project_id: int, user: Optional[dict] = Depends(get_optional_user)):
    """Project with interest count, student flags and its family (interests for admins)."""
    with get_db_session() as db:
        project = _require_visible(project_service.get_project(db, project_id), user)
        if user and user["type"] == "student":
            project_service.apply_student_flags([project], project_service.student_project_flags(db, user["id"]))
        family = project_service.get_project_family(db, project_id)
        interests = None
        if user and user["type"] == "admin":
            interests = project_service.get_project_interests(db, project_id)
        if user:
            log_analytics(db, "project_viewed_with_phases", user, project_id=project_id)

    return {
        "project": ProjectResponse(**project),
        "project_family": _visible_family(family, user),
        "interests": interests,
    }


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(request: Request, project_id: int, user: dict = Depends(get_client_or_admin)):
    """Delete a project. Owners may only delete pending or rejected projects."""
    with get_db_session() as db:
        project = project_service.require_project(db, project_id)
        project_service.delete_project(db, project, user, client_ip(request))
    return MessageResponse(message="Project deleted successfully")
