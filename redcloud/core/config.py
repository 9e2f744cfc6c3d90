from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent.parent


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "red-cloud"
    APP_ENV: str = "dev"
    STAGE: str = Field(default="dev", validation_alias=AliasChoices("STAGE", "ALCHEMY_STAGE"))
    BASE_URL: str = "http://localhost:8000"

    DATA_DIR: Path = Field(default_factory=lambda: Path("data"))
    TEMPLATES_DIR: Path | None = None
    STATIC_DIR: Path | None = None
    AVATARS_DIR: Path | None = None

    DB_URL: str = Field(
        default="sqlite:///data/red-cloud.db",
        validation_alias=AliasChoices("DB_URL", "DATABASE_URL"),
    )

    APP_SECRET: str = "dev-insecure-secret-change-me"
    SESSION_COOKIE_NAME: str = "rc_session"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7

    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 15
    JWT_REFRESH_TTL_DAYS: int = 7

    OTP_LENGTH: int = 6
    OTP_TTL_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 3
    OTP_HASH_ROUNDS: int = 10

    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM_NAME: str = "Red Cloud"
    EMAIL_FROM_ADDRESS: str = "noreply@example.com"

    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""

    ORGANIZATION_LIMIT: int = 5
    MEMBERSHIP_LIMIT: int = 50
    INVITATION_EXPIRES_SECONDS: int = 48 * 60 * 60
    DELETE_ACCOUNT_TOKEN_TTL_SECONDS: int = 24 * 60 * 60

    AVATAR_MAX_BYTES: int = 2 * 1024 * 1024

    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    @property
    def is_dev(self) -> bool:
        return self.APP_ENV.lower() in {"dev", "development", "local"}

    @property
    def templates_dir(self) -> Path:
        return self.TEMPLATES_DIR or PACKAGE_DIR / "templates"

    @property
    def static_dir(self) -> Path:
        return self.STATIC_DIR or PACKAGE_DIR / "static"

    @property
    def avatars_dir(self) -> Path:
        return self.AVATARS_DIR or self.DATA_DIR / "avatars"

    @property
    def email_from(self) -> str:
        return f"{self.EMAIL_FROM_NAME} <{self.EMAIL_FROM_ADDRESS}>"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
