from functools import lru_cache
from typing import Any

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    app_name: str = "Coupon Backend"
    app_version: str = "0.1.0"
    environment: str = "local"
    host: str = "0.0.0.0"
    port: int = 10000

    # Either a full async URL, or the discrete DB_* parts below.
    database_url: str | None = None
    db_user: str = "postgres"
    db_password: str | None = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "coupons"
    db_ssl: bool = False
    verify_db_on_startup: bool = True

    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["GET", "POST"]
    cors_allow_headers: list[str] = ["Content-Type", "Authorization"]

    claim_cookie_name: str = "couponClaimed"
    claim_cookie_max_age_seconds: int = 3600
    cookie_samesite: str = "lax"
    secure_cookies: bool | None = None
    claim_policy: str = "dual_gate"

    log_json: bool = False
    log_level: str = "INFO"

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.0

    @model_validator(mode="after")
    def _default_secure_cookies(self) -> "Settings":
        if self.secure_cookies is None:
            self.secure_cookies = self.is_production
        return self

    @property
    def is_production(self) -> bool:
        return (self.environment or "").strip().lower() in {"prod", "production"}

    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        url = URL.create(
            "postgresql+asyncpg",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )
        return url.render_as_string(hide_password=False)

    def db_connect_args(self) -> dict[str, Any]:
        url = self.sqlalchemy_url()
        if url.startswith("sqlite"):
            return {"check_same_thread": False}
        if self.db_ssl and "asyncpg" in url:
            # Managed Postgres hosts terminate TLS with certificates we do not pin.
            return {"ssl": "require"}
        return {}


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
