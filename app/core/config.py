# app/core/config.py
"""
Runtime configuration.

Values come from the environment; a root .env (then app/.env, without
overriding) is loaded first so local development works without exports.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(usecwd=True))
load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


def _flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self) -> None:
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./fieldservice.db")

        # Identity provider bearer tokens
        self.idp_jwt_secret: str = os.getenv("IDP_JWT_SECRET", "change-me")
        self.idp_jwt_algorithm: str = os.getenv("IDP_JWT_ALGORITHM", "HS256")
        self.idp_jwt_audience: Optional[str] = os.getenv("IDP_JWT_AUDIENCE") or None

        # Sticky active-company hint
        self.sticky_secret: str = os.getenv("STICKY_SECRET") or self.idp_jwt_secret
        self.active_company_cookie: str = os.getenv("ACTIVE_COMPANY_COOKIE", "fv_active_company")
        self.cookie_secure: bool = _flag("COOKIE_SECURE", "1")

        # Invites
        self.invite_ttl_hours: int = int(os.getenv("INVITE_TTL_HOURS", "168"))
        self.app_base_url: str = os.getenv("APP_BASE_URL", "http://localhost:3000")

        # Startup switches
        self.enable_create_all: bool = _flag("ENABLE_CREATE_ALL", "1")
        self.enable_scheduler: bool = _flag("ENABLE_SCHEDULER", "1")
        self.invite_sweep_minutes: int = int(os.getenv("INVITE_SWEEP_MINUTES", "15"))

        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()


def get_settings() -> Settings:
    """Return the process settings (FastAPI dependency friendly)."""
    return settings
