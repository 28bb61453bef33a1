# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Runtime configuration, read once from the environment (and an optional `.env`).

Everything the app needs is collected into a frozen `Settings` value that
`create_app()` receives explicitly; nothing else reads `os.environ`.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///data/secretboard.db"
DEFAULT_SESSION_TTL_SECONDS = 28800  # 8 hours

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    session_secret: Optional[str] = None  # required to issue sessions
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    cookie_secure: bool = True
    public_base_url: str = "https://localhost"

    # Google OAuth (optional)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None

    # Optional layers on top of the route table
    rate_limit_enabled: bool = True
    audit_enabled: bool = True

    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def google_redirect_uri(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/auth/google/secrets"


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, "") or default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))

    public_base_url = _env("SECRETBOARD_PUBLIC_BASE_URL", "https://localhost").rstrip("/")

    ttl = int(float(_env("SECRETBOARD_SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS))))
    if ttl < 60:
        ttl = 60

    return Settings(
        database_url=_env("SECRETBOARD_DATABASE_URL", DEFAULT_DATABASE_URL),
        session_secret=_env("SECRETBOARD_SESSION_SECRET") or None,
        session_ttl_seconds=ttl,
        # Default: secure cookies when the public URL is https.
        cookie_secure=_env_bool("SECRETBOARD_COOKIE_SECURE", public_base_url.startswith("https://")),
        public_base_url=public_base_url,
        google_client_id=_env("GOOGLE_CLIENT_ID") or None,
        google_client_secret=_env("GOOGLE_CLIENT_SECRET") or None,
        rate_limit_enabled=_env_bool("SECRETBOARD_RATE_LIMIT_ENABLED", True),
        audit_enabled=_env_bool("SECRETBOARD_AUDIT_ENABLED", True),
        log_level=_env("SECRETBOARD_LOG_LEVEL", "INFO").upper(),
        log_file=_env("SECRETBOARD_LOG_FILE") or None,
    )
