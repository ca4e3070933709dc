"""
Configuration module - loads settings from environment variables and .env.
"""
import json
import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator, field_validator
from typing import List, Any

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    # Supabase (service role key bypasses RLS; access checks happen in the routes)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(default="", alias="SUPABASE_SERVICE_ROLE_KEY")

    # Resend (Email)
    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    resend_from_email: str = Field(default="onboarding@example.com", alias="RESEND_FROM_EMAIL")
    admin_notification_email: str = Field(default="", alias="ADMIN_NOTIFICATION_EMAIL")

    # Auth
    session_cookie_name: str = Field(default="sb-access-token", alias="SESSION_COOKIE_NAME")

    # PDF pipeline
    form_templates_dir: str = Field(default="templates", alias="FORM_TEMPLATES_DIR")
    field_offsets_file: Optional[str] = Field(default=None, alias="FIELD_OFFSETS_FILE")
    pdf_font_size: float = Field(
        default=9.0,
        alias="PDF_FONT_SIZE",
        description="Font size used when drawing field values onto page content",
    )
    coordinate_magnitude_limit: float = Field(
        default=1000.0,
        alias="COORDINATE_MAGNITUDE_LIMIT",
        description="Raw widget Y values at or above this magnitude are measured from the page top",
    )

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # CORS
    allowed_origins: List[str] = Field(default=[], alias="ALLOWED_ORIGINS")

    @field_validator("allowed_origins", mode='before')
    @classmethod
    def _parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse ALLOWED_ORIGINS from JSON list, CSV, semicolon-separated string, or list."""
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    return json.loads(s)
                except json.JSONDecodeError:
                    pass  # Fall through to delimiter parsing
            parts = [p.strip() for p in s.replace(",", ";").split(";")]
            return [p for p in parts if p]
        return []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @model_validator(mode='after')
    def validate_supabase(self) -> 'Settings':
        """Warn about missing Supabase configuration outside development."""
        if self.environment == "production":
            if not self.supabase_url:
                logger.error("CRITICAL: SUPABASE_URL is not set in production!")
            if not self.supabase_service_role_key:
                logger.error(
                    "CRITICAL: SUPABASE_SERVICE_ROLE_KEY is not set in production! "
                    "Role lookups and stored PDF reads will fail."
                )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Development origins (only in non-production)
DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]


def get_cors_origins() -> List[str]:
    """
    Get list of allowed CORS origins.

    Combines:
    1. Origins from ALLOWED_ORIGINS env variable
    2. Development origins (if not in production)
    """
    settings = get_settings()
    origins = set(settings.allowed_origins)

    if not settings.is_production:
        origins.update(DEV_CORS_ORIGINS)

    return sorted(origins)
