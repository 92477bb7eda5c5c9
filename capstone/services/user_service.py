"""
User Service - account creation and administration for the three user tables.

    student -> students
    client  -> clients
    admin   -> admin_users
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from capstone.core.auth import hash_password, USER_TABLES
from capstone.core.errors import ConflictError, NotFoundError, ValidationError
from capstone.db.sqlite import get_db_session, fetch_all, fetch_one

logger = logging.getLogger(__name__)

# columns shown in admin user listings
LIST_COLUMNS = {
    "student": "id, email, full_name AS name, student_number, course, is_archived, archived_at, last_login, created_at",
    "client": "id, email, contact_name AS name, organization_name, industry, is_archived, archived_at, last_login, created_at",
    "admin": "id, email, full_name AS name, is_archived, archived_at, last_login, created_at",
}


def table_for(user_type: str) -> str:
    if user_type not in USER_TABLES:
        raise ValidationError(f"Invalid user type '{user_type}'", code="INVALID_USER_TYPE")
    return USER_TABLES[user_type][0]


def find_account_type(db: Session, email: str) -> Optional[str]:
    """Return the user type already using this email, if any."""
    for user_type, (table, _) in USER_TABLES.items():
        row = db.execute(
            text(f"SELECT id FROM {table} WHERE lower(email) = lower(:email)"),
            {"email": email}
        ).fetchone()
        if row:
            return user_type
    return None


def ensure_email_available(db: Session, email: str) -> None:
    if find_account_type(db, email):
        raise ConflictError("Email already registered", code="EMAIL_EXISTS")


# ============================================================
# CREATION
# ============================================================

def create_student(db: Session, email: str, password: str, full_name: str,
                   student_number: str = None, course: str = None, year_level: int = None) -> int:
    ensure_email_available(db, email)
    result = db.execute(
        text("""
            INSERT INTO students (email, password_hash, full_name, student_number, course, year_level)
            VALUES (:email, :password_hash, :full_name, :student_number, :course, :year_level)
        """),
        {"email": email.lower(), "password_hash": hash_password(password), "full_name": full_name,
         "student_number": student_number, "course": course, "year_level": year_level}
    )
    return result.lastrowid


def create_client(db: Session, email: str, password: str, organization_name: str, contact_name: str,
                  **details) -> int:
    ensure_email_available(db, email)
    params = {
        "email": email.lower(), "password_hash": hash_password(password),
        "organization_name": organization_name, "contact_name": contact_name,
    }
    for field in ("contact_title", "phone", "address", "website", "description", "industry"):
        params[field] = details.get(field)
    result = db.execute(
        text("""
            INSERT INTO clients (email, password_hash, organization_name, contact_name, contact_title,
                phone, address, website, description, industry)
            VALUES (:email, :password_hash, :organization_name, :contact_name, :contact_title,
                :phone, :address, :website, :description, :industry)
        """),
        params
    )
    return result.lastrowid


def create_admin(email: str, password: str, full_name: str, db: Session = None) -> int:
    """Create an administrator (used by the admin API, CLI script and tests)."""
    if db is None:
        with get_db_session() as session:
            return create_admin(email, password, full_name, db=session)
    ensure_email_available(db, email)
    result = db.execute(
        text("INSERT INTO admin_users (email, password_hash, full_name) VALUES (:email, :password_hash, :full_name)"),
        {"email": email.lower(), "password_hash": hash_password(password), "full_name": full_name}
    )
    return result.lastrowid


# ============================================================
# ADMINISTRATION
# ============================================================

def list_users(user_type: Optional[str] = None, include_archived: bool = False) -> Dict[str, List[dict]]:
    types = [user_type] if user_type else list(USER_TABLES)
    result = {}
    with get_db_session() as db:
        for t in types:
            sql = f"SELECT {LIST_COLUMNS[t]} FROM {table_for(t)}"
            if not include_archived:
                sql += " WHERE is_archived = 0"
            sql += " ORDER BY created_at DESC, id DESC"
            result[t] = fetch_all(db, sql)
    return result


def get_user(db: Session, user_type: str, user_id: int) -> dict:
    row = fetch_one(db, f"SELECT {LIST_COLUMNS[user_type]} FROM {table_for(user_type)} WHERE id = :id",
                    {"id": user_id})
    if not row:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return row


def set_archived(db: Session, user_type: str, user_id: int, archived: bool) -> dict:
    user = get_user(db, user_type, user_id)
    if bool(user["is_archived"]) == archived:
        state = "archived" if archived else "active"
        raise ConflictError(f"User is already {state}", code="ALREADY_ARCHIVED" if archived else "NOT_ARCHIVED")
    db.execute(
        text(f"""
            UPDATE {table_for(user_type)}
            SET is_archived = :archived,
                archived_at = CASE WHEN :archived = 1 THEN CURRENT_TIMESTAMP ELSE NULL END
            WHERE id = :id
        """),
        {"archived": 1 if archived else 0, "id": user_id}
    )
    return user


def delete_user(db: Session, user_type: str, user_id: int) -> dict:
    """Hard delete a student or client that holds no live data."""
    if user_type not in ("student", "client"):
        raise ValidationError("Only students and clients can be deleted", code="INVALID_USER_TYPE")
    user = get_user(db, user_type, user_id)

    if user_type == "student":
        active = db.execute(
            text("SELECT COUNT(*) FROM student_interests WHERE student_id = :id AND is_active = 1"),
            {"id": user_id}
        ).scalar()
        if active:
            raise ConflictError("Cannot delete student with active project interests", code="HAS_ACTIVE_INTERESTS")
    else:
        live = db.execute(
            text("SELECT COUNT(*) FROM projects WHERE client_id = :id AND status NOT IN ('completed', 'rejected')"),
            {"id": user_id}
        ).scalar()
        if live:
            raise ConflictError("Cannot delete client with active projects", code="HAS_ACTIVE_PROJECTS")

    db.execute(text(f"DELETE FROM {table_for(user_type)} WHERE id = :id"), {"id": user_id})
    return user
