"""
Project Service - queries and mutations shared by the project, client and
student routes.

Every mutation runs inside the caller's session and writes its audit row in
that same session.
"""

from typing import Dict, List, Optional, Set

from sqlalchemy import text
from sqlalchemy.orm import Session

from capstone.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from capstone.db.sqlite import fetch_all, fetch_one, like_pattern
from capstone.services import project_lifecycle as lifecycle
from capstone.services.audit_service import log_audit

# writable project columns, in insert order
PROJECT_FIELDS = (
    "title", "description", "required_skills", "tools_technologies", "deliverables",
    "semester_availability", "project_type", "duration_weeks", "max_students",
    "prerequisites", "additional_info",
)

PROJECT_SELECT = """
    SELECT p.*, c.organization_name, c.contact_name,
           (SELECT COUNT(*) FROM student_interests si
            WHERE si.project_id = p.id AND si.is_active = 1) AS interest_count
    FROM projects p
    JOIN clients c ON p.client_id = c.id
"""


# ============================================================
# READS
# ============================================================

def get_project(db: Session, project_id: int) -> Optional[dict]:
    return fetch_one(db, PROJECT_SELECT + " WHERE p.id = :id", {"id": project_id})


def require_project(db: Session, project_id: int) -> dict:
    project = get_project(db, project_id)
    if not project:
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
    return project


def is_owner(project: dict, user: Optional[dict]) -> bool:
    return bool(user) and user["type"] == "client" and user["id"] == project["client_id"]


def can_view(project: dict, user: Optional[dict]) -> bool:
    """Public projects are visible to everyone; others only to the owner and admins."""
    if lifecycle.is_public(project["status"]):
        return True
    return bool(user) and (user["type"] == "admin" or is_owner(project, user))


def student_project_flags(db: Session, student_id: int) -> Dict[str, Set[int]]:
    """Project ids the student has favorited / holds an active interest in."""
    favorites = db.execute(
        text("SELECT project_id FROM student_favorites WHERE student_id = :sid"),
        {"sid": student_id}
    ).scalars().all()
    interests = db.execute(
        text("SELECT project_id FROM student_interests WHERE student_id = :sid AND is_active = 1"),
        {"sid": student_id}
    ).scalars().all()
    return {"favorites": set(favorites), "interests": set(interests)}


def apply_student_flags(projects: List[dict], flags: Dict[str, Set[int]]) -> List[dict]:
    for project in projects:
        project["is_favorite"] = project["id"] in flags["favorites"]
        project["has_expressed_interest"] = project["id"] in flags["interests"]
    return projects


def search_public_projects(db: Session, search: str = None, semester: str = None,
                           min_interests: int = None, limit: int = 50, offset: int = 0):
    """Approved/active projects matching the filters, most popular first. Returns (rows, total)."""
    where = ["p.status IN ('approved', 'active')"]
    params = {}
    if search:
        where.append("""(p.title LIKE :search ESCAPE '\\' OR p.description LIKE :search ESCAPE '\\'
                         OR p.required_skills LIKE :search ESCAPE '\\'
                         OR p.tools_technologies LIKE :search ESCAPE '\\')""")
        params["search"] = like_pattern(search)
    if semester:
        # "both" projects run in either semester
        if semester == "both":
            where.append("p.semester_availability = 'both'")
        else:
            where.append("p.semester_availability IN (:semester, 'both')")
            params["semester"] = semester

    sql = f"SELECT * FROM ({PROJECT_SELECT} WHERE {' AND '.join(where)}) AS listing"
    if min_interests:
        sql += " WHERE interest_count >= :min_interests"
        params["min_interests"] = min_interests

    total = db.execute(text(f"SELECT COUNT(*) FROM ({sql})"), params).scalar()
    rows = fetch_all(
        db,
        sql + " ORDER BY interest_count DESC, created_at DESC, id DESC LIMIT :limit OFFSET :offset",
        {**params, "limit": limit, "offset": offset}
    )
    return rows, total


def get_project_interests(db: Session, project_id: int, include_contact: bool = True) -> List[dict]:
    """Active interests for a project, with student details."""
    rows = fetch_all(db, """
        SELECT si.id, si.student_id, si.message, si.expressed_at,
               s.full_name, s.email, s.student_number, s.course
        FROM student_interests si
        JOIN students s ON si.student_id = s.id
        WHERE si.project_id = :pid AND si.is_active = 1
        ORDER BY si.expressed_at DESC, si.id DESC
    """, {"pid": project_id})
    if not include_contact:
        for row in rows:
            row.pop("email", None)
            row.pop("student_number", None)
    return rows


def get_project_family(db: Session, project_id: int) -> Optional[dict]:
    """Root project, its phases (ordered), and the phase currently running."""
    project = fetch_one(db, "SELECT id, parent_project_id FROM projects WHERE id = :id", {"id": project_id})
    if not project:
        return None
    root_id = project["parent_project_id"] or project["id"]
    root = get_project(db, root_id)
    phases = fetch_all(
        db,
        PROJECT_SELECT + " WHERE p.parent_project_id = :root ORDER BY p.phase_number",
        {"root": root_id}
    )
    current = root
    for phase in phases:
        if phase["status"] in (lifecycle.APPROVED, lifecycle.ACTIVE, lifecycle.COMPLETED):
            current = phase
    return {
        "root_project": root,
        "phases": phases,
        "current_phase": current,
        "total_phases": len(phases),
    }


# ============================================================
# WRITES
# ============================================================

def _clean_values(data: dict) -> dict:
    values = {}
    for field in PROJECT_FIELDS:
        if field in data:
            value = data[field]
            values[field] = value.value if hasattr(value, "value") else value
    return values


def create_project(db: Session, client_id: int, data: dict, user: dict, ip_address: str = None,
                   parent_project_id: int = None, phase_number: int = 1) -> int:
    """Insert a pending project and audit it."""
    values = {field: None for field in PROJECT_FIELDS}
    values.update(_clean_values(data))
    if not values.get("semester_availability"):
        values["semester_availability"] = "both"
    result = db.execute(
        text(f"""
            INSERT INTO projects (client_id, parent_project_id, phase_number, status, {', '.join(PROJECT_FIELDS)})
            VALUES (:client_id, :parent_project_id, :phase_number, 'pending',
                    {', '.join(':' + f for f in PROJECT_FIELDS)})
        """),
        {**values, "client_id": client_id, "parent_project_id": parent_project_id, "phase_number": phase_number}
    )
    project_id = result.lastrowid
    action = "project_phase_created" if parent_project_id else "project_created"
    log_audit(db, user, action, "project", project_id, None,
              {"title": values["title"], "parent_project_id": parent_project_id, "phase_number": phase_number},
              ip_address)
    return project_id


def ensure_can_modify(project: dict, user: dict, action: str = "modify") -> None:
    """Admins may modify any project; owners only while pending or rejected."""
    if user["type"] == "admin":
        return
    if not is_owner(project, user):
        raise AuthorizationError(f"Access denied. You can only {action} your own projects.", code="ACCESS_DENIED")
    if not lifecycle.owner_can_modify(project["status"]):
        raise AuthorizationError(
            f"Cannot {action} a project with status '{project['status']}'. "
            "Only pending or rejected projects can be changed.",
            code="PROJECT_LOCKED",
            details={"status": project["status"]}
        )


def update_project(db: Session, project: dict, data: dict, user: dict, ip_address: str = None) -> str:
    """Apply field updates; a rejected project goes back to pending. Returns the new status."""
    ensure_can_modify(project, user, "edit")
    values = _clean_values(data)
    if not values:
        raise ValidationError("No fields to update", code="NO_UPDATES")

    new_status = lifecycle.status_after_edit(project["status"])
    if new_status != project["status"]:
        lifecycle.ensure_transition(project["status"], new_status)

    updates = [f"{field} = :{field}" for field in values]
    updates.append("status = :status")
    updates.append("updated_at = CURRENT_TIMESTAMP")
    if new_status == lifecycle.PENDING and project["status"] == lifecycle.REJECTED:
        updates.append("rejection_reason = NULL")

    db.execute(
        text(f"UPDATE projects SET {', '.join(updates)} WHERE id = :id"),
        {**values, "status": new_status, "id": project["id"]}
    )
    log_audit(db, user, "project_updated", "project", project["id"],
              {field: project.get(field) for field in values} | {"status": project["status"]},
              values | {"status": new_status},
              ip_address)
    return new_status


def review_project(db: Session, project: dict, target: str, admin: dict,
                   feedback: str = None, ip_address: str = None) -> None:
    """Admin approval or rejection of a pending project."""
    lifecycle.ensure_transition(project["status"], target)
    if target == lifecycle.APPROVED:
        db.execute(
            text("""
                UPDATE projects SET status = 'approved', approved_by = :admin_id,
                    approved_at = CURRENT_TIMESTAMP, rejection_reason = NULL, updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
            """),
            {"admin_id": admin["id"], "id": project["id"]}
        )
    else:
        db.execute(
            text("""
                UPDATE projects SET status = 'rejected', rejection_reason = :feedback,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = :id
            """),
            {"feedback": feedback, "id": project["id"]}
        )
    log_audit(db, admin, f"project_{target}", "project", project["id"],
              {"status": project["status"]}, {"status": target, "feedback": feedback}, ip_address)


def toggle_project(db: Session, project: dict, admin: dict, ip_address: str = None) -> str:
    target = lifecycle.toggle_target(project["status"])
    db.execute(
        text("UPDATE projects SET status = :status, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
        {"status": target, "id": project["id"]}
    )
    log_audit(db, admin, "project_toggled", "project", project["id"],
              {"status": project["status"]}, {"status": target}, ip_address)
    return target


def complete_project(db: Session, project: dict, admin: dict, preserve_client_data: bool = True,
                     ip_address: str = None) -> None:
    lifecycle.ensure_transition(project["status"], lifecycle.COMPLETED)
    db.execute(
        text("""
            UPDATE projects SET status = 'completed', completed_by = :admin_id,
                completed_at = CURRENT_TIMESTAMP,
                client_name_snapshot = :contact, client_org_snapshot = :org,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = :id
        """),
        {
            "admin_id": admin["id"], "id": project["id"],
            "contact": project["contact_name"] if preserve_client_data else None,
            "org": project["organization_name"] if preserve_client_data else None,
        }
    )
    log_audit(db, admin, "project_completed", "project", project["id"],
              {"status": project["status"]},
              {"status": lifecycle.COMPLETED, "preserve_client_data": preserve_client_data},
              ip_address)


def delete_project(db: Session, project: dict, user: dict, ip_address: str = None) -> None:
    """Hard delete; interests and favorites cascade. A root project must lose its phases first."""
    ensure_can_modify(project, user, "delete")
    phase_count = db.execute(
        text("SELECT COUNT(*) FROM projects WHERE parent_project_id = :id"), {"id": project["id"]}
    ).scalar()
    if phase_count:
        raise ConflictError(
            "Cannot delete a project that still has phases. Delete its phases first.",
            code="PROJECT_HAS_PHASES",
            details={"phase_count": phase_count}
        )
    db.execute(text("DELETE FROM projects WHERE id = :id"), {"id": project["id"]})
    log_audit(db, user, "project_deleted", "project", project["id"],
              {"title": project["title"], "status": project["status"]}, None, ip_address)
