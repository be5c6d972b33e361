from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10-19.v1"
    database_url: str = "sqlite:///./deposit_escrow.db"
    sqlite_busy_timeout: float = 30.0

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Tenant directory (monthly rent lookups) ----
    tenant_directory_url: str | None = None
    tenant_directory_token: str | None = None
    tenant_directory_timeout: float = 10.0

    # ---- Notifications ----
    notify_mode: str = "log"  # log|http|celery
    notify_webhook_url: str | None = None
    notify_timeout: float = 5.0
    notify_max_retries: int = 5
    notify_retry_base_seconds: int = 5
    notify_retry_max_seconds: int = 300

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    # ---- Actor context ----
    auth_mode: str = "dev"  # dev|gateway
    dev_header_user_id: str = "X-User-Id"
    dev_header_user_role: str = "X-User-Role"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        mode = (self.notify_mode or "log").strip().lower()
        if mode not in ("log", "http", "celery"):
            raise ValueError(f"notify_mode must be log|http|celery, got {self.notify_mode!r}")
        if mode == "http" and not self.notify_webhook_url:
            raise ValueError("notify_mode=http requires notify_webhook_url")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
