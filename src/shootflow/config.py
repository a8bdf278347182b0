"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    sendgrid_api_key: str
    sendgrid_base_url: str = "https://api.sendgrid.com/v3"
    email_from: str
    email_subject_prefix: str = "ShootFlow"
    approver_email: str
    finance_email: str
    vendor_email: str
    admin_email: str
    app_url: str | None = None
    timezone: str = "Asia/Kolkata"
    quote_debounce_seconds: float = 0.5
    completion_sweep_seconds: float = 60
    reminder_sweep_seconds: float = 3600
    invoice_reminder_days: int = 7
    sweeps_enabled: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
