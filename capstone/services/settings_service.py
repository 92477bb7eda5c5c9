"""
Settings Service - runtime configuration stored in config_settings.

Values are stored as text and typed by setting_type:
    string  -> str
    number  -> int / float
    boolean -> bool ("true" / "false")
    json    -> list / dict

Reads go through a short-lived in-process cache; every write invalidates it.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from capstone.core.config import get_settings
from capstone.core.errors import AuthorizationError, NotFoundError, ValidationError
from capstone.db.sqlite import get_db_session, fetch_all
from capstone.services.audit_service import log_audit

settings = get_settings()
logger = logging.getLogger(__name__)

CATEGORIES = ("branding", "auth", "features", "rules", "privacy")


# ============================================================
# DEFAULTS
# (key, value, type, category, description)
# ============================================================

DEFAULT_SETTINGS = [
    # Branding
    ("site_title", "Capstone Connect", "string", "branding", "Main title displayed across the application"),
    ("site_tagline", "Connecting Students with Real-World Projects", "string", "branding", "Tagline shown on homepage"),
    ("primary_color", "#e31837", "string", "branding", "Primary color for buttons and headers (hex format)"),
    ("secondary_color", "#1a1a1a", "string", "branding", "Secondary accent color (hex format)"),
    ("footer_text", "All rights reserved.", "string", "branding", "Footer copyright text"),
    ("site_logo_url", "", "string", "branding", "Logo image URL"),

    # Auth
    ("student_domain_whitelist", [], "json", "auth", "Allowed email domains for student registration (empty allows all)"),
    ("client_registration_mode", "open", "string", "auth", "Client registration mode: open, whitelist, or approval_required"),
    ("client_domain_whitelist", [], "json", "auth", "Allowed email domains for client registration (if mode is whitelist)"),
    ("require_email_verification", False, "boolean", "auth", "Whether email verification is required for registration"),

    # Features
    ("enable_gallery", True, "boolean", "features", "Enable/disable project gallery feature"),
    ("enable_analytics", True, "boolean", "features", "Enable/disable analytics dashboard for admins"),
    ("enable_student_favorites", True, "boolean", "features", "Allow students to favorite projects"),
    ("enable_bulk_operations", True, "boolean", "features", "Enable bulk operations for admin users"),
    ("enable_project_phases", True, "boolean", "features", "Allow multi-phase projects"),
    ("enable_interest_messages", True, "boolean", "features", "Allow students to add messages when expressing interest"),

    # Business rules
    ("max_student_interests", settings.max_project_interests, "number", "rules", "Maximum number of active project interests per student"),
    ("max_student_favorites", settings.max_favorites, "number", "rules", "Maximum number of favorite projects per student"),
    ("min_team_size", 1, "number", "rules", "Minimum team size for projects"),
    ("max_team_size", 10, "number", "rules", "Maximum team size for projects"),
    ("interest_withdrawal_allowed", True, "boolean", "rules", "Allow students to withdraw interest from projects"),
    ("project_types", ["development", "research", "design", "analysis", "other"], "json", "rules", "Available project type options"),
    ("academic_terms", ["Semester 1", "Semester 2", "Summer", "Winter"], "json", "rules", "Academic term options"),

    # Privacy
    ("data_retention_years", 7, "number", "privacy", "Years to retain data before archiving"),
    ("show_student_details_to_clients", True, "boolean", "privacy", "Whether clients can see full student details"),
    ("public_project_visibility", True, "boolean", "privacy", "Whether non-logged users can browse projects"),
    ("public_gallery_visibility", True, "boolean", "privacy", "Whether non-logged users can view gallery"),
]

DEFAULTS_BY_KEY = {row[0]: row for row in DEFAULT_SETTINGS}

REGISTRATION_MODES = ("open", "whitelist", "approval_required")


# ============================================================
# TYPE CONVERSION
# ============================================================

def parse_value(raw: Optional[str], setting_type: str) -> Any:
    """Convert a stored text value into its typed form."""
    if raw is None:
        return None
    if setting_type == "boolean":
        return raw.lower() == "true"
    if setting_type == "number":
        number = float(raw)
        return int(number) if number.is_integer() else number
    if setting_type == "json":
        return json.loads(raw)
    return raw


def serialize_value(value: Any, setting_type: str) -> str:
    if setting_type == "boolean":
        return "true" if value else "false"
    if setting_type == "json":
        return json.dumps(value)
    return str(value)


def validate_value(key: str, value: Any, setting_type: str) -> Any:
    """Check a new value against its declared type; returns the normalized value."""
    if setting_type == "boolean":
        if not isinstance(value, bool):
            raise ValidationError(f"Setting '{key}' must be true or false", code="INVALID_SETTING_VALUE")
        return value
    if setting_type == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Setting '{key}' must be a number", code="INVALID_SETTING_VALUE")
        if value < 0:
            raise ValidationError(f"Setting '{key}' cannot be negative", code="INVALID_SETTING_VALUE")
        return value
    if setting_type == "json":
        if not isinstance(value, (list, dict)):
            raise ValidationError(f"Setting '{key}' must be a list or object", code="INVALID_SETTING_VALUE")
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Setting '{key}' must be text", code="INVALID_SETTING_VALUE")
    if key == "client_registration_mode" and value not in REGISTRATION_MODES:
        raise ValidationError(
            f"client_registration_mode must be one of: {', '.join(REGISTRATION_MODES)}",
            code="INVALID_SETTING_VALUE"
        )
    return value


def email_domain_matches(email: str, whitelist: List[str]) -> bool:
    """'@uni.edu' matches exactly, '*.uni.edu' matches any subdomain."""
    domain = email[email.rfind("@"):].lower()
    for allowed in whitelist:
        allowed = str(allowed).lower()
        if allowed.startswith("*"):
            if domain.endswith(allowed[1:]):
                return True
        elif domain == allowed or domain == f"@{allowed.lstrip('@')}":
            return True
    return False


# ============================================================
# SETTINGS MANAGER
# ============================================================

class SettingsManager:
    """
    Cached access to config_settings.
    Missing rows fall back to the built-in defaults.
    """

    def __init__(self, cache_seconds: int = None):
        self.cache_seconds = settings.settings_cache_seconds if cache_seconds is None else cache_seconds
        self._cache: Dict[str, dict] = {}
        self._loaded_at: float = 0.0

    def invalidate(self) -> None:
        self._cache = {}
        self._loaded_at = 0.0

    def _load(self) -> Dict[str, dict]:
        if self._cache and time.monotonic() - self._loaded_at < self.cache_seconds:
            return self._cache

        with get_db_session() as db:
            rows = fetch_all(db, """
                SELECT setting_key, setting_value, setting_type, category, description, updated_by, updated_at
                FROM config_settings ORDER BY category, setting_key
            """)

        cache = {}
        for row in rows:
            try:
                row["value"] = parse_value(row["setting_value"], row["setting_type"])
            except (ValueError, TypeError):
                logger.error(f"Unparseable value for setting {row['setting_key']}: {row['setting_value']!r}")
                default = DEFAULTS_BY_KEY.get(row["setting_key"])
                row["value"] = default[1] if default else None
            cache[row["setting_key"]] = row

        self._cache = cache
        self._loaded_at = time.monotonic()
        return cache

    # ----- reads -----

    def get(self, key: str, default: Any = None) -> Any:
        row = self._load().get(key)
        if row is not None:
            return row["value"]
        if key in DEFAULTS_BY_KEY:
            return DEFAULTS_BY_KEY[key][1]
        return default

    def get_category(self, category: str) -> Dict[str, Any]:
        if category not in CATEGORIES:
            raise NotFoundError(f"Unknown settings category '{category}'", code="CATEGORY_NOT_FOUND")
        return {
            key: self.get(key)
            for key, _, _, cat, _ in DEFAULT_SETTINGS if cat == category
        }

    def get_category_detailed(self, category: str) -> List[dict]:
        """Rows with metadata, as shown in the admin settings screen."""
        if category not in CATEGORIES:
            raise NotFoundError(f"Unknown settings category '{category}'", code="CATEGORY_NOT_FOUND")
        cache = self._load()
        result = []
        for key, default, setting_type, cat, description in DEFAULT_SETTINGS:
            if cat != category:
                continue
            row = cache.get(key, {})
            result.append({
                "key": key,
                "value": row.get("value", default),
                "type": setting_type,
                "description": row.get("description") or description,
                "updated_at": row.get("updated_at"),
            })
        return result

    def export(self) -> Dict[str, Dict[str, Any]]:
        """All settings grouped by category."""
        return {category: self.get_category(category) for category in CATEGORIES}

    # ----- convenience -----

    def is_enabled(self, flag: str) -> bool:
        return bool(self.get(flag, False))

    def require_feature(self, flag: str, message: str) -> None:
        if not self.is_enabled(flag):
            raise AuthorizationError(message, code="FEATURE_DISABLED")

    def max_interests(self) -> int:
        return int(self.get("max_student_interests", settings.max_project_interests))

    def max_favorites(self) -> int:
        return int(self.get("max_student_favorites", settings.max_favorites))

    def is_student_email_allowed(self, email: str) -> bool:
        whitelist = self.get("student_domain_whitelist", [])
        if not isinstance(whitelist, list) or not whitelist:
            return True
        return email_domain_matches(email, whitelist)

    def is_client_email_allowed(self, email: str) -> bool:
        mode = self.get("client_registration_mode", "open")
        if mode != "whitelist":
            return True
        whitelist = self.get("client_domain_whitelist", [])
        if not isinstance(whitelist, list) or not whitelist:
            return False
        return email_domain_matches(email, whitelist)

    def branding(self) -> Dict[str, Any]:
        return self.get_category("branding")

    def business_rules(self) -> Dict[str, Any]:
        rules = self.get_category("rules")
        rules["enable_student_favorites"] = self.is_enabled("enable_student_favorites")
        rules["enable_interest_messages"] = self.is_enabled("enable_interest_messages")
        return rules

    # ----- writes -----

    def seed_defaults(self) -> int:
        """Insert any missing default rows; existing values are left alone."""
        inserted = 0
        with get_db_session() as db:
            for key, value, setting_type, category, description in DEFAULT_SETTINGS:
                result = db.execute(
                    text("""
                        INSERT OR IGNORE INTO config_settings
                            (setting_key, setting_value, setting_type, category, description)
                        VALUES (:key, :value, :type, :category, :description)
                    """),
                    {"key": key, "value": serialize_value(value, setting_type), "type": setting_type,
                     "category": category, "description": description}
                )
                inserted += result.rowcount
        self.invalidate()
        return inserted

    def update_many(self, values: Dict[str, Any], admin: dict, ip_address: str = None,
                    skip_unknown: bool = False) -> Dict[str, List[str]]:
        """
        Validate and store several settings in one transaction.

        Unknown keys raise 404 unless skip_unknown is set (imports).
        """
        updated, skipped = [], []
        normalized = {}
        for key, value in values.items():
            if key not in DEFAULTS_BY_KEY:
                if skip_unknown:
                    skipped.append(key)
                    continue
                raise NotFoundError(f"Unknown setting '{key}'", code="SETTING_NOT_FOUND")
            setting_type = DEFAULTS_BY_KEY[key][2]
            normalized[key] = validate_value(key, value, setting_type)

        with get_db_session() as db:
            for key, value in normalized.items():
                _, _, setting_type, category, description = DEFAULTS_BY_KEY[key]
                old = db.execute(
                    text("SELECT setting_value FROM config_settings WHERE setting_key = :key"),
                    {"key": key}
                ).fetchone()
                new_raw = serialize_value(value, setting_type)
                db.execute(
                    text("""
                        INSERT INTO config_settings
                            (setting_key, setting_value, setting_type, category, description, updated_by, updated_at)
                        VALUES (:key, :value, :type, :category, :description, :admin_id, CURRENT_TIMESTAMP)
                        ON CONFLICT(setting_key) DO UPDATE SET
                            setting_value = excluded.setting_value,
                            updated_by = excluded.updated_by,
                            updated_at = CURRENT_TIMESTAMP
                    """),
                    {"key": key, "value": new_raw, "type": setting_type, "category": category,
                     "description": description, "admin_id": admin["id"]}
                )
                log_audit(db, admin, "setting_updated", "config_setting", None,
                          {"key": key, "value": old[0] if old else None}, {"key": key, "value": new_raw},
                          ip_address)
                updated.append(key)

        self.invalidate()
        return {"updated": updated, "skipped": skipped}

    def reset_all(self, admin: dict, ip_address: str = None) -> int:
        """Restore every setting to its default value."""
        with get_db_session() as db:
            db.execute(text("DELETE FROM config_settings"))
            for key, value, setting_type, category, description in DEFAULT_SETTINGS:
                db.execute(
                    text("""
                        INSERT INTO config_settings
                            (setting_key, setting_value, setting_type, category, description, updated_by)
                        VALUES (:key, :value, :type, :category, :description, :admin_id)
                    """),
                    {"key": key, "value": serialize_value(value, setting_type), "type": setting_type,
                     "category": category, "description": description, "admin_id": admin["id"]}
                )
            log_audit(db, admin, "settings_reset", "config_setting", None, None,
                      {"count": len(DEFAULT_SETTINGS)}, ip_address)
        self.invalidate()
        return len(DEFAULT_SETTINGS)


# Singleton instance
_settings_manager: SettingsManager = None


def get_settings_manager() -> SettingsManager:
    """Get or create the settings manager (singleton pattern)"""
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager
