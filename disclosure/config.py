from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./disclosure.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # Public origin of the web app, used to build invite links
    app_origin: str = "http://localhost:3000"

    # ---- Identity claims ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    # Dev header names
    dev_header_subject: str = "X-User-Sub"
    dev_header_email: str = "X-User-Email"
    dev_header_name: str = "X-User-Name"
    dev_header_roles: str = "X-User-Roles"
    dev_header_org_slug: str = "X-Org-Slug"

    jwt_secret: str = "dev-change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # ---- Object storage (S3 / MinIO) ----
    s3_bucket: str = "disclosures"
    s3_region: str = "us-east-1"
    s3_endpoint: str | None = None  # e.g. http://localhost:9000 for MinIO
    s3_force_path_style: bool = False
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    delete_batch_size: int = 1000

    # ---- Uploads ----
    upload_max_bytes: int = 10 * 1024 * 1024
    upload_allowed_types: list[str] | str = ["application/pdf", "image/jpeg", "image/png"]

    # ---- Rendering ----
    render_timeout_seconds: float = 30.0
    artifact_lock_ttl_seconds: int = 120

    # ---- Email ----
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_timeout_seconds: float = 15.0
    email_from: str = "no-reply@example.com"

    # ---- Invites ----
    invite_ttl_days: int = 7

    def allowed_upload_types(self) -> set[str]:
        val = self.upload_allowed_types
        if isinstance(val, str):
            return {x.strip().lower() for x in val.split(",") if x.strip()}
        return {str(x).strip().lower() for x in val}

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        # Hard fail: prod must never trust spoofable dev headers
        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

        if int(self.delete_batch_size) <= 0 or int(self.delete_batch_size) > 1000:
            raise ValueError("delete_batch_size must be between 1 and 1000")


settings = Settings()
