"""
Runtime configuration.

Values come from environment variables, then from a ``.env`` file in the
working directory, then from the defaults below. ``create_app`` receives a
``Settings`` instance explicitly; nothing reads the environment after startup.
"""
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings.

    Attributes:
        environment: ``development`` shows raw error messages and stacks; anything else masks them.
        login_rate_limit: slowapi limit string for the rate limited login route.
        cors_origins: Comma separated list of allowed origins, ``*`` for any.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    environment: str = Field("development", validation_alias=AliasChoices("app_env", "environment"))
    database_url: str = "sqlite:///./inventory.db"
    jwt_secret: str = "dev-secret"
    jwt_expiry_seconds: int = 60 * 60 * 24  # 1 day
    log_level: str = "INFO"
    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    max_body_bytes: int = 2 * 1024 * 1024
    max_upload_bytes: int = 5 * 1024 * 1024
    upload_dir: str = "uploads"
    cors_origins: str = "*"
    host: str = "0.0.0.0"
    port: int = 7001

    @field_validator("environment")
    @classmethod
    def _lower_environment(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def development(self) -> bool:
        return self.environment == "development"

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def load_settings(env_file: Optional[str] = ".env") -> Settings:
    """Read settings once; ``env_file=None`` skips the dotenv file."""
    return Settings(_env_file=env_file)
