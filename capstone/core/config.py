"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all environment config values.

Runtime-editable settings (branding, feature flags, business rules) live in
the config_settings table, see capstone/services/settings_service.py.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Capstone Connect"
    environment: str = "development"
    debug: bool = True

    # SQLite database file
    database_url: str = "sqlite:///./data/capstone.db"
    database_echo: bool = False

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440
    jwt_refresh_expire_days: int = 7

    # Password hashing and login lockout
    bcrypt_rounds: int = 12
    max_login_attempts: int = 5
    lockout_minutes: int = 15

    # Global rate limiting (per client IP)
    rate_limit_enabled: bool = True
    rate_limit_max: int = 500
    rate_limit_window_minutes: int = 15
    # reverse proxies in front of the app; 0 ignores X-Forwarded-For
    trusted_proxy_count: int = 0

    # CORS (comma separated)
    allowed_origins: str = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:8000"

    # Business rule defaults (seed values for config_settings)
    max_project_interests: int = 5
    max_favorites: int = 20

    # Audit / analytics
    audit_enabled: bool = True
    analytics_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = True

    # Runtime settings cache (seconds)
    settings_cache_seconds: int = 300

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        """Split ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
