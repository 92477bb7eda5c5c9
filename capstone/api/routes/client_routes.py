"""
Client Routes

GET /clients/dashboard - Organization profile, projects and summary stats
GET /clients/projects - My projects (any status)
GET /clients/projects/{project_id} - One of my projects with interested students
POST /clients/projects - Submit a project
PUT /clients/projects/{project_id} - Edit a pending/rejected project
DELETE /clients/projects/{project_id} - Delete a pending/rejected project
"""

from fastapi import APIRouter, Depends, Request

from capstone.db.sqlite import get_db_session, fetch_all, fetch_one
from capstone.core.auth import get_current_client
from capstone.core.errors import NotFoundError
from capstone.core.security import client_ip
from capstone.services import project_service, project_lifecycle as lifecycle
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    ProjectCreate, ProjectUpdate, ProjectResponse, ProjectMutationResponse, MessageResponse
)

router = APIRouter(prefix="/clients", tags=["Clients"])


def _own_project(db, project_id: int, client: dict) -> dict:
    """Load a project owned by this client; anything else is reported as not found."""
    project = project_service.get_project(db, project_id)
    if not project or project["client_id"] != client["id"]:
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    return project


@router.get("/dashboard")
async def dashboard(client: dict = Depends(get_current_client)):
    with get_db_session() as db:
        profile = fetch_one(db, """
            SELECT id, email, organization_name, contact_name, contact_title, phone, address,
                   website, description, industry, created_at, last_login
            FROM clients WHERE id = :cid
        """, {"cid": client["id"]})
        projects = fetch_all(
            db,
            project_service.PROJECT_SELECT + " WHERE p.client_id = :cid ORDER BY p.created_at DESC, p.id DESC",
            {"cid": client["id"]}
        )

    by_status = {status: 0 for status in lifecycle.ALL_STATUSES}
    for project in projects:
        by_status[project["status"]] += 1

    return {
        "client": profile,
        "projects": [ProjectResponse(**p) for p in projects],
        "stats": {
            "total_projects": len(projects),
            "by_status": by_status,
            "total_interests": sum(p["interest_count"] for p in projects),
            "live_projects": by_status[lifecycle.APPROVED] + by_status[lifecycle.ACTIVE],
        },
    }


@router.get("/projects")
async def my_projects(client: dict = Depends(get_current_client)):
    with get_db_session() as db:
        projects = fetch_all(
            db,
            project_service.PROJECT_SELECT + " WHERE p.client_id = :cid ORDER BY p.created_at DESC, p.id DESC",
            {"cid": client["id"]}
        )
    return {"projects": [ProjectResponse(**p) for p in projects], "count": len(projects)}


@router.get("/projects/{project_id}")
async def my_project(project_id: int, client: dict = Depends(get_current_client)):
    """One of my projects, with the students interested in it."""
    include_contact = get_settings_manager().is_enabled("show_student_details_to_clients")
    with get_db_session() as db:
        project = _own_project(db, project_id, client)
        interests = project_service.get_project_interests(db, project_id, include_contact)
    return {"project": ProjectResponse(**project), "interests": interests}


@router.post("/projects", response_model=ProjectMutationResponse, status_code=201)
async def create_project(request: Request, project: ProjectCreate, client: dict = Depends(get_current_client)):
    with get_db_session() as db:
        project_id = project_service.create_project(
            db, client["id"], project.model_dump(), client, client_ip(request)
        )
        created = project_service.get_project(db, project_id)
    return ProjectMutationResponse(
        message="Project submitted successfully and is pending approval",
        project=ProjectResponse(**created)
    )


@router.put("/projects/{project_id}", response_model=ProjectMutationResponse)
async def update_project(request: Request, project_id: int, update: ProjectUpdate,
                         client: dict = Depends(get_current_client)):
    """Edit a pending or rejected project. Rejected projects go back to pending."""
    with get_db_session() as db:
        project = _own_project(db, project_id, client)
        new_status = project_service.update_project(
            db, project, update.model_dump(exclude_unset=True), client, client_ip(request)
        )
        updated = project_service.get_project(db, project_id)

    message = "Project updated successfully"
    if new_status != project["status"]:
        message = "Project updated and resubmitted for review"
    return ProjectMutationResponse(message=message, project=ProjectResponse(**updated))


@router.delete("/projects/{project_id}", response_model=MessageResponse)
async def delete_project(request: Request, project_id: int, client: dict = Depends(get_current_client)):
    with get_db_session() as db:
        project = _own_project(db, project_id, client)
        project_service.delete_project(db, project, client, client_ip(request))
    return MessageResponse(message="Project deleted successfully")
