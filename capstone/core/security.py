"""
Security helpers - rate limiting, login lockout, input sanitization and
security headers.

Rate limits use the `limits` library (moving window, in-memory storage);
counters are process-local.
"""

import html
import logging
import re
import time
from typing import Optional

import bleach
from fastapi import Request
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerMinute
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from capstone.core.config import get_settings
from capstone.core.errors import RateLimitError, error_body

settings = get_settings()
logger = logging.getLogger(__name__)

storage = MemoryStorage()
limiter = MovingWindowRateLimiter(storage)

# e.g. 500 requests per 15 minutes per IP
global_limit = RateLimitItemPerMinute(settings.rate_limit_max, settings.rate_limit_window_minutes)
# failed logins per (ip, email)
login_limit = RateLimitItemPerMinute(settings.max_login_attempts, settings.lockout_minutes)

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
STUDENT_NUMBER_PATTERN = re.compile(r"^[0-9]{8}$")
PHONE_PATTERN = re.compile(r"^[\+]?[1-9][\d\s\-\(\)]{8,20}$")


# ============================================================
# SANITIZATION & FIELD RULES
# ============================================================

def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip all HTML tags and surrounding whitespace from free text."""
    if value is None:
        return None
    # bleach escapes &, < and >; the API stores plain text
    return html.unescape(bleach.clean(value, tags=[], attributes={}, strip=True)).strip()


def check_password_strength(password: str) -> str:
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not PASSWORD_PATTERN.match(password):
        raise ValueError("Password must contain uppercase, lowercase, number, and special character")
    return password


def check_person_name(name: str) -> str:
    if not NAME_PATTERN.match(name):
        raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
    return name


def check_student_number(value: Optional[str]) -> Optional[str]:
    if value and not STUDENT_NUMBER_PATTERN.match(value):
        raise ValueError("Student ID must be exactly 8 digits")
    return value or None


def check_phone(value: Optional[str]) -> Optional[str]:
    if value and not PHONE_PATTERN.match(value):
        raise ValueError("Please enter a valid phone number")
    return value or None


# ============================================================
# RATE LIMITING
# ============================================================

def client_ip(request: Request) -> str:
    """
    Address used for rate limiting and audit rows.

    X-Forwarded-For is only read when TRUSTED_PROXY_COUNT is set, and then the
    entry that many hops from the right is used; entries further left are
    supplied by the caller.
    """
    if settings.trusted_proxy_count > 0:
        hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",") if h.strip()]
        if hops:
            return hops[max(0, len(hops) - settings.trusted_proxy_count)]
    return request.client.host if request.client else "unknown"


def _retry_after(item, *identifiers) -> int:
    stats = limiter.get_window_stats(item, *identifiers)
    return max(1, int(stats.reset_time - time.time()))


def check_login_allowed(ip: str, email: str) -> None:
    """Raise 429 when this ip/email pair has used up its login attempts."""
    key = f"{ip}:{email.lower()}"
    if not limiter.test(login_limit, "login", key):
        logger.warning(f"Login locked out for {email} from {ip}")
        raise RateLimitError(
            f"Too many login attempts. Please try again in {settings.lockout_minutes} minutes.",
            retry_after=_retry_after(login_limit, "login", key)
        )


def record_failed_login(ip: str, email: str) -> None:
    limiter.hit(login_limit, "login", f"{ip}:{email.lower()}")


def clear_failed_logins(ip: str, email: str) -> None:
    limiter.clear(login_limit, "login", f"{ip}:{email.lower()}")


def reset_rate_limits() -> None:
    """Forget every counter (tests and admin maintenance)."""
    storage.reset()


async def rate_limit_middleware(request: Request, call_next):
    """Global per-IP limit for /api requests."""
    if settings.rate_limit_enabled and request.url.path.startswith("/api"):
        ip = client_ip(request)
        if not limiter.hit(global_limit, "global", ip):
            logger.warning(f"Rate limit exceeded for {ip} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content=error_body(request, "Too many requests from this IP, please try again later.", "RATE_LIMITED"),
                headers={"Retry-After": str(_retry_after(global_limit, "global", ip))},
            )
    return await call_next(request)


# ============================================================
# SECURITY HEADERS
# ============================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response
