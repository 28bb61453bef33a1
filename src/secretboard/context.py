# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from secretboard.audit import AuditLog
from secretboard.auth.rate_limit import RateLimiter, default_limiters
from secretboard.auth.session import SessionManager
from secretboard.config import Settings
from secretboard.infra.db import Database
from secretboard.infra.user_repo import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    db: Database
    store: CredentialStore
    sessions: SessionManager
    audit: AuditLog
    limiters: Dict[str, RateLimiter] = field(default_factory=dict)


def build_context(settings: Settings) -> AppContext:
    db = Database(settings.database_url)
    db.create_schema()
    store = CredentialStore(db)
    sessions = SessionManager(settings, db, store)
    sessions.purge_expired()
    logger.info(
        "Secretboard ready: db=%s google=%s rate_limit=%s audit=%s",
        db.engine.url.render_as_string(hide_password=True),
        settings.google_enabled,
        settings.rate_limit_enabled,
        settings.audit_enabled,
    )
    return AppContext(
        settings=settings,
        db=db,
        store=store,
        sessions=sessions,
        audit=AuditLog(db, enabled=settings.audit_enabled),
        limiters=default_limiters() if settings.rate_limit_enabled else {},
    )
