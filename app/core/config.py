from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Food Share Marketplace"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    cors_allow_origins: List[str] = ["*"]

    # ─────────── DATABASE ───────────
    database_url: str
    db_pool_timeout_seconds: int = 10
    db_statement_timeout_ms: int = 15000  # postgres only

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours
    password_min_length: int = 6

    # ─────────── SIGNUP THROTTLING ───────────
    signup_window_minutes: int = 60
    signup_max_per_ip: int = 5
    signup_max_per_email: int = 3
    signup_allowed_roles: List[str] = ["donor", "ngo", "recipient"]
    signup_default_role: str = "donor"

    # ─────────── CLAIMS ───────────
    auto_complete_on_receipt: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
