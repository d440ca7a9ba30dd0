# server/config.py

import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator


load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    PROJECT_NAME: str = "Shop API"
    VERSION: str = "1.0.0"

    api_prefix: str = "/api/v1"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./app.db")

    # JWT
    jwt_algorithm: str = "HS256"
    jwt_access_token_secret: str = os.getenv("JWT_ACCESS_TOKEN_SECRET", "CHANGE_ME_ACCESS")
    jwt_refresh_token_secret: str = os.getenv("JWT_REFRESH_TOKEN_SECRET", "CHANGE_ME_REFRESH")
    access_token_expire_minutes: int = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
    refresh_token_expire_days: int = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_DAYS", "7"))

    # Refresh cookie
    cookie_name: str = "jwt"
    cookie_secure: bool = os.getenv("COOKIE_SECURE", "true").lower() == "true"
    cookie_samesite: str = os.getenv("COOKIE_SAMESITE", "none")

    # Password reset
    reset_token_expire_minutes: int = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "30"))
    reset_email_subject: str = "Password Recovery - Shop"

    # SMTP
    smtp_host: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_user: str = os.getenv("SMTP_USER", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "")
    smtp_from: str = os.getenv("SMTP_FROM", "")

    # CORS
    cors_origins: List[str] = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    @field_validator("cookie_samesite")
    @classmethod
    def check_samesite(cls, v):
        v = v.lower()
        if v not in ("lax", "strict", "none"):
            raise ValueError("cookie_samesite must be lax, strict or none")
        return v

    @property
    def refresh_token_max_age(self) -> int:
        return self.refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
