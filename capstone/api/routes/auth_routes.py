"""
Authentication Routes

POST /auth/register/student - Register student account (returns token)
POST /auth/register/client - Register client organization (+ optional first project)
POST /auth/login - Login with any account type
POST /auth/login/{user_type} - Login restricted to one account type
POST /auth/logout - Clear auth cookies
POST /auth/refresh - New access token from the refresh cookie
GET /auth/profile - Current user's profile
GET /auth/verify - Check token validity
"""

from typing import Iterable, Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text

from capstone.db.sqlite import get_db_session, fetch_one
from capstone.core.auth import (
    verify_password, create_access_token, create_refresh_token, decode_token, token_payload,
    load_user, get_current_user, get_optional_user, USER_TABLES, AUTH_COOKIE, REFRESH_COOKIE
)
from capstone.core.config import get_settings
from capstone.core.errors import AuthenticationError, AuthorizationError, ValidationError
from capstone.core.security import (
    client_ip, check_login_allowed, record_failed_login, clear_failed_logins
)
from capstone.services import user_service, project_service
from capstone.services.audit_service import log_audit, log_analytics
from capstone.services.settings_service import get_settings_manager
from capstone.schemas.schemas import (
    StudentRegisterRequest, ClientRegisterRequest, ClientRegisterResponse, LoginRequest,
    TokenResponse, UserInfo, UserType, MessageResponse
)

settings = get_settings()

router = APIRouter(prefix="/auth", tags=["Authentication"])

PROFILE_COLUMNS = {
    "student": "id, email, full_name, student_number, course, year_level, created_at, last_login",
    "client": """id, email, organization_name, contact_name, contact_title, phone, address, website,
                 description, industry, created_at, last_login""",
    "admin": "id, email, full_name, created_at, last_login",
}


def _set_auth_cookies(response: Response, user: dict) -> str:
    """Issue access + refresh tokens; access token is also returned in the body."""
    payload = token_payload(user)
    access_token = create_access_token(payload)
    response.set_cookie(
        AUTH_COOKIE, access_token,
        max_age=settings.jwt_expire_minutes * 60,
        httponly=True, samesite="lax", secure=settings.is_production
    )
    response.set_cookie(
        REFRESH_COOKIE, create_refresh_token(payload),
        max_age=settings.jwt_refresh_expire_days * 24 * 3600,
        httponly=True, samesite="strict", secure=settings.is_production, path="/api/auth"
    )
    return access_token


def _token_response(response: Response, user: dict) -> TokenResponse:
    access_token = _set_auth_cookies(response, user)
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.jwt_expire_minutes * 60,
        user=UserInfo(id=user["id"], email=user["email"], type=user["type"], name=user.get("name"))
    )


# ============================================================
# REGISTRATION
# ============================================================

@router.post("/register/student", response_model=TokenResponse, status_code=201)
async def register_student(request: Request, response: Response, body: StudentRegisterRequest):
    """
    Register a student account and log it in.

    The email domain must pass the student_domain_whitelist setting (empty list allows all).
    """
    if not get_settings_manager().is_student_email_allowed(body.email):
        raise AuthorizationError(
            "Registration is restricted to approved student email domains",
            code="DOMAIN_NOT_ALLOWED"
        )

    with get_db_session() as db:
        student_id = user_service.create_student(
            db, body.email, body.password, body.full_name,
            body.student_number, body.course, body.year_level
        )
        user = {"id": student_id, "email": body.email.lower(), "type": "student", "name": body.full_name}
        log_audit(db, user, "register_success", "student", student_id, None,
                  {"email": user["email"]}, client_ip(request))
        log_analytics(db, "registration", user)

    return _token_response(response, user)


@router.post("/register/client", response_model=ClientRegisterResponse, status_code=201)
async def register_client(request: Request, body: ClientRegisterRequest):
    """
    Register a client organization, optionally with a first project.

    Client and project are created in one transaction. No token is issued;
    the client logs in afterwards. In approval_required mode the account
    stays archived until an admin restores it.
    """
    settings_manager = get_settings_manager()
    if not settings_manager.is_client_email_allowed(body.email):
        raise AuthorizationError(
            "Registration is restricted to approved organization email domains",
            code="DOMAIN_NOT_ALLOWED"
        )
    needs_approval = settings_manager.get("client_registration_mode") == "approval_required"

    project = body.project
    has_project_data = bool(project and (project.title or project.description))
    if has_project_data and not body.discuss_first and not (project.title and project.description):
        raise ValidationError(
            "Project title and description are both required to submit a project",
            code="VALIDATION_ERROR"
        )

    ip = client_ip(request)
    project_id = None
    with get_db_session() as db:
        client_id = user_service.create_client(
            db, body.email, body.password, body.organization_name, body.contact_name,
            contact_title=body.contact_title, phone=body.phone, address=body.address,
            website=body.website, description=body.description, industry=body.industry
        )
        user = {"id": client_id, "email": body.email.lower(), "type": "client", "name": body.contact_name}

        if needs_approval:
            db.execute(
                text("UPDATE clients SET is_archived = 1, archived_at = CURRENT_TIMESTAMP WHERE id = :id"),
                {"id": client_id}
            )

        if has_project_data and not body.discuss_first:
            project_id = project_service.create_project(db, client_id, project.model_dump(), user, ip)

        log_audit(db, user, "register_success", "client", client_id, None, {
            "organization_name": body.organization_name,
            "has_initial_project": project_id is not None,
            "project_id": project_id,
            "discuss_first": body.discuss_first,
        }, ip)
        log_analytics(db, "registration", user)

    if body.discuss_first:
        message = "Registration submitted successfully. Our team will contact you to discuss project opportunities."
    elif project_id:
        message = "Registration and project submitted successfully. Your project is pending review."
    else:
        message = "Registration submitted successfully. You can add project details later from your dashboard."
    if needs_approval:
        message += " Your account will be activated once an administrator approves it."

    return ClientRegisterResponse(
        message=message,
        organization_name=body.organization_name,
        contact_name=body.contact_name,
        email=body.email.lower(),
        has_project=project_id is not None,
        project_id=project_id,
        discuss_first=body.discuss_first,
    )


# ============================================================
# LOGIN / LOGOUT
# ============================================================

def _find_account(email: str, user_types: Iterable[str]) -> Optional[dict]:
    with get_db_session() as db:
        for user_type in user_types:
            table, name_column = USER_TABLES[user_type]
            row = fetch_one(
                db,
                f"""SELECT id, email, password_hash, {name_column} AS name, is_archived
                    FROM {table} WHERE lower(email) = lower(:email)""",
                {"email": email}
            )
            if row:
                row["type"] = user_type
                return row
    return None


def _login(request: Request, response: Response, body: LoginRequest, user_types: Iterable[str]) -> TokenResponse:
    ip = client_ip(request)
    email = body.email.lower()
    check_login_allowed(ip, email)

    account = _find_account(email, user_types)
    if not account or not verify_password(body.password, account["password_hash"]):
        record_failed_login(ip, email)
        with get_db_session() as db:
            log_audit(db, None, "login_failed", account["type"] if account else None,
                      account["id"] if account else None, None, {"email": email}, ip)
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")

    if account["is_archived"]:
        raise AuthorizationError("Account has been archived. Please contact an administrator.",
                                 code="ACCOUNT_ARCHIVED")

    clear_failed_logins(ip, email)
    user = {"id": account["id"], "email": account["email"], "type": account["type"], "name": account["name"]}
    with get_db_session() as db:
        db.execute(
            text(f"UPDATE {USER_TABLES[user['type']][0]} SET last_login = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": user["id"]}
        )
        log_audit(db, user, "login_success", user["type"], user["id"], None, None, ip)
        log_analytics(db, "login", user)

    return _token_response(response, user)


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, response: Response, body: LoginRequest):
    """
    Login with any account type and receive a JWT access token.

    Include token in requests: Authorization: Bearer <token>
    (an httpOnly auth_token cookie is set as well).
    """
    return _login(request, response, body, USER_TABLES.keys())


@router.post("/login/{user_type}", response_model=TokenResponse)
async def login_as(user_type: UserType, request: Request, response: Response, body: LoginRequest):
    """Login restricted to one account type (student, client or admin)."""
    return _login(request, response, body, [user_type.value])


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, user: Optional[dict] = Depends(get_optional_user)):
    response.delete_cookie(AUTH_COOKIE)
    response.delete_cookie(REFRESH_COOKIE, path="/api/auth")
    if user:
        with get_db_session() as db:
            log_audit(db, user, "logout", user["type"], user["id"], None, None, client_ip(request))
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(request: Request, response: Response):
    """Exchange the refresh cookie for a new access token."""
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AuthenticationError("Refresh token required", code="REFRESH_TOKEN_MISSING")
    payload = decode_token(token, token_use="refresh")
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired refresh token", code="REFRESH_TOKEN_INVALID")

    user = load_user(payload.get("type"), int(payload["sub"]))
    if not user:
        raise AuthenticationError("User not found", code="USER_NOT_FOUND")
    if user["is_archived"]:
        raise AuthorizationError("Account has been archived", code="ACCOUNT_ARCHIVED")
    return _token_response(response, user)


# ============================================================
# PROFILE
# ============================================================

@router.get("/profile")
async def profile(user: dict = Depends(get_current_user)):
    """Current user's profile (no password hash)."""
    table = USER_TABLES[user["type"]][0]
    with get_db_session() as db:
        row = fetch_one(db, f"SELECT {PROFILE_COLUMNS[user['type']]} FROM {table} WHERE id = :id",
                        {"id": user["id"]})
    return {"user_type": user["type"], "profile": row}


@router.get("/verify")
async def verify(user: dict = Depends(get_current_user)):
    return {"valid": True, "user": user}
