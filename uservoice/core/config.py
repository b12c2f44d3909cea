# File: uservoice/core/config.py
# Project: user-voice-backend

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Environment driven settings (a local .env file is read too).

    Only DATABASE_URL and JWT_SECRET are mandatory. A sqlite URL such as
    sqlite:///./uservoice.db is fine for local work.

    Mail is sent through EMAIL_PROVIDER ("smtp" or "resend") once its
    credentials and EMAIL_FROM_ADDRESS are set; until then sending is skipped.
    While EMAIL_DOMAIN_VERIFIED is false and EMAIL_REDIRECT_TO is set, every
    message is redirected there.

    Web push needs the VAPID key pair, file uploads need SUPABASE_URL and
    SUPABASE_SERVICE_ROLE. Without them pushes are skipped and uploads are
    stored inline as data URLs.

    Set AUTO_CREATE_TABLES=false once alembic owns the schema, and use a
    stricter AUTH_RATE_LIMIT (e.g. 10/15minutes) in production.
    """
    # core
    database_url: str = Field(..., alias="DATABASE_URL")
    jwt_secret: str = Field(..., alias="JWT_SECRET")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")
    backend_cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        alias="BACKEND_CORS_ORIGINS",
    )
    frontend_base_url: str = Field(default="", alias="FRONTEND_BASE_URL")

    # accounts and projects
    allow_self_registration: bool = Field(default=True, alias="ALLOW_SELF_REGISTRATION")
    default_project_slug: str = Field(default="default", alias="DEFAULT_PROJECT_SLUG")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    auth_rate_limit: str = Field(default="100/15minutes", alias="AUTH_RATE_LIMIT")

    # mail
    email_provider: str = Field(default="smtp", alias="EMAIL_PROVIDER")
    email_from_name: Optional[str] = Field(default=None, alias="EMAIL_FROM_NAME")
    email_from_address: Optional[str] = Field(default=None, alias="EMAIL_FROM_ADDRESS")
    email_redirect_to: Optional[str] = Field(default=None, alias="EMAIL_REDIRECT_TO")
    email_domain_verified: bool = Field(default=False, alias="EMAIL_DOMAIN_VERIFIED")
    smtp_host: Optional[str] = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, alias="SMTP_PASSWORD")
    smtp_use_ssl: bool = Field(default=True, alias="SMTP_USE_SSL")
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")

    # web push
    vapid_public_key: Optional[str] = Field(default=None, alias="VAPID_PUBLIC_KEY")
    vapid_private_key: Optional[str] = Field(default=None, alias="VAPID_PRIVATE_KEY")
    vapid_sub: str = Field(default="mailto:noreply@example.com", alias="VAPID_SUB")

    # file storage
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_service_role: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_ROLE")
    supabase_attachments_bucket: str = Field(default="attachments", alias="SUPABASE_ATTACHMENTS_BUCKET")
    supabase_avatars_bucket: str = Field(default="avatars", alias="SUPABASE_AVATARS_BUCKET")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

def cors_origins_list() -> List[str]:
    raw = settings.backend_cors_origins or ""
    return [x.strip().rstrip("/") for x in raw.split(",") if x.strip()]

settings = Settings()
