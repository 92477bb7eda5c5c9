"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- Access / refresh JWT creation and verification
- FastAPI dependencies for protected routes (bearer header or auth_token cookie)
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from capstone.core.config import get_settings
from capstone.core.errors import AuthenticationError, AuthorizationError
from capstone.db.sqlite import get_db_session, fetch_one

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

# Bearer token extractor (cookie is the fallback, so no auto error)
bearer_scheme = HTTPBearer(auto_error=False)

AUTH_COOKIE = "auth_token"
REFRESH_COOKIE = "refresh_token"

# user type -> (table, display name column)
USER_TABLES = {
    "student": ("students", "full_name"),
    "client": ("clients", "contact_name"),
    "admin": ("admin_users", "full_name"),
}


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire, "token_use": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(data: dict) -> str:
    """Create long-lived JWT refresh token (sent only as an httpOnly cookie)."""
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(days=settings.jwt_refresh_expire_days)
    to_encode.update({"exp": expire, "token_use": "refresh"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_use: str = "access") -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("token_use", "access") != token_use:
        return None
    return payload


def token_payload(user: dict) -> dict:
    return {"sub": str(user["id"]), "email": user["email"], "type": user["type"]}


def load_user(user_type: str, user_id: int) -> Optional[dict]:
    """Fetch a user row by type and id as {id, email, type, name, is_archived}."""
    if user_type not in USER_TABLES:
        return None
    table, name_column = USER_TABLES[user_type]
    with get_db_session() as db:
        row = fetch_one(
            db,
            f"SELECT id, email, {name_column} AS name, is_archived FROM {table} WHERE id = :id",
            {"id": user_id}
        )
    if not row:
        return None
    row["type"] = user_type
    return row


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(AUTH_COOKIE)


def _resolve_user(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    token = _extract_token(request, credentials)
    if not token:
        raise AuthenticationError("Access token required", code="TOKEN_MISSING")

    payload = decode_token(token)
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token", code="TOKEN_INVALID")

    # Verify user exists
    user = load_user(payload.get("type"), int(payload["sub"]))
    if not user:
        raise AuthenticationError("User not found", code="USER_NOT_FOUND")

    if user["is_archived"]:
        raise AuthorizationError("Account has been archived", code="ACCOUNT_ARCHIVED")

    user = {"id": user["id"], "email": user["email"], "type": user["type"], "name": user["name"]}
    request.state.user = user
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    return _resolve_user(request, credentials)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[dict]:
    """Dependency - Current user if a valid token was sent, otherwise None."""
    if not _extract_token(request, credentials):
        return None
    try:
        return _resolve_user(request, credentials)
    except (AuthenticationError, AuthorizationError):
        return None


def require_roles(*roles: str):
    """Build a dependency that only admits the given user types."""
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["type"] not in roles:
            raise AuthorizationError(
                "Insufficient permissions",
                code="INSUFFICIENT_PERMISSIONS",
                details={"required": list(roles), "current": user["type"]}
            )
        return user
    return dependency


get_current_student = require_roles("student")
get_current_client = require_roles("client")
get_current_admin = require_roles("admin")
get_client_or_admin = require_roles("client", "admin")
