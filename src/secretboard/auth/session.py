# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import base64
import logging
import os
from datetime import timedelta
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from secretboard.config import Settings
from secretboard.infra.db import Database, SessionRow, utcnow
from secretboard.infra.user_repo import CredentialStore
from secretboard.models import ANONYMOUS, AuthContext

logger = logging.getLogger(__name__)

SESSION_SALT = "secretboard.session.v1"


def random_token(nbytes: int = 32) -> str:
    return base64.urlsafe_b64encode(os.urandom(nbytes)).decode("ascii").rstrip("=")


def session_cookie_name(settings: Settings) -> str:
    # `__Host-` requires Secure + Path=/ + no Domain; browsers reject it on HTTP.
    return "__Host-secretboard_session" if settings.cookie_secure else "secretboard_session"


def session_cookie_kwargs(settings: Settings, value: str) -> dict:
    return {
        "key": session_cookie_name(settings),
        "value": value,
        "max_age": settings.session_ttl_seconds,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def clear_session_cookie_kwargs(settings: Settings) -> dict:
    return {**session_cookie_kwargs(settings, ""), "max_age": 0}


class SessionManager:
    """
    Server-side sessions keyed by a random token.

    The cookie carries the token signed with itsdangerous, so a tampered or
    expired cookie is rejected before any database lookup. The `sessions`
    row is the source of truth: deleting it ends the session even if the
    client keeps the cookie.
    """

    def __init__(self, settings: Settings, db: Database, store: CredentialStore):
        if not settings.session_secret:
            raise RuntimeError("Missing SECRETBOARD_SESSION_SECRET")
        self._settings = settings
        self._db = db
        self._store = store
        self._serializer = URLSafeTimedSerializer(secret_key=settings.session_secret, salt=SESSION_SALT)

    @property
    def cookie_name(self) -> str:
        return session_cookie_name(self._settings)

    @property
    def ttl_seconds(self) -> int:
        return self._settings.session_ttl_seconds

    def create(self, user_id: str) -> str:
        token = random_token(32)
        now = utcnow()
        row = SessionRow(
            token=token,
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )

        def _insert(session: Session) -> None:
            # Expired rows are cleared on each sign-in so the table stays bounded.
            session.execute(delete(SessionRow).where(SessionRow.expires_at <= now))
            session.add(row)
            session.commit()

        self._db.run("session.create", _insert)
        return self._serializer.dumps({"t": token})

    def _token(self, cookie_value: Optional[str]) -> Optional[str]:
        if not cookie_value:
            return None
        try:
            data = self._serializer.loads(cookie_value, max_age=self.ttl_seconds)
        except (BadSignature, BadTimeSignature):
            return None
        if not isinstance(data, dict):
            return None
        token = str(data.get("t") or "").strip()
        return token or None

    def resolve(self, cookie_value: Optional[str]) -> AuthContext:
        token = self._token(cookie_value)
        if token is None:
            return ANONYMOUS

        def _lookup(session: Session) -> Optional[str]:
            row = session.execute(select(SessionRow).where(SessionRow.token == token)).scalar_one_or_none()
            if row is None or row.expires_at <= utcnow():
                return None
            return row.user_id

        user_id = self._db.run("session.resolve", _lookup)
        if user_id is None:
            return ANONYMOUS
        user = self._store.get(user_id)
        if user is None:
            return ANONYMOUS
        return AuthContext(user=user)

    def destroy(self, cookie_value: Optional[str]) -> None:
        token = self._token(cookie_value)
        if token is None:
            return

        def _delete(session: Session) -> None:
            session.execute(delete(SessionRow).where(SessionRow.token == token))
            session.commit()

        self._db.run("session.destroy", _delete)

    def purge_expired(self) -> int:
        def _purge(session: Session) -> int:
            result = session.execute(delete(SessionRow).where(SessionRow.expires_at <= utcnow()))
            session.commit()
            return result.rowcount

        removed = self._db.run("session.purge_expired", _purge)
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed
