import ssl
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="sqlite:///./social.db", alias="DATABASE_URL")
    query_timeout_seconds: float = Field(default=5, alias="QUERY_TIMEOUT_SECONDS", gt=0)

    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algo: str = Field(default="HS256", alias="JWT_ALGO")
    jwt_issuer: str = Field(default="social-api", alias="JWT_ISSUER")
    access_min: int = Field(default=60, alias="ACCESS_MIN", ge=1)

    invite_ttl_hours: int = Field(default=72, alias="INVITE_TTL_HOURS", ge=1)
    frontend_url: str = Field(default="http://localhost:5173", alias="FRONTEND_URL")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        alias="CORS_ORIGINS",
    )

    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    mail_from: str | None = Field(default=None, alias="MAIL_FROM")
    mail_workers: int = Field(default=4, alias="MAIL_WORKERS", ge=1)


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore


def get_smtp_ctx() -> ssl.SSLContext:
    return ssl.create_default_context()
