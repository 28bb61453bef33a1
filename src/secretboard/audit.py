# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from secretboard.errors import BackingStoreUnavailable
from secretboard.infra.db import AuditEventRow, Database, utcnow

logger = logging.getLogger("secretboard.audit")


@dataclass(frozen=True)
class AuditEvent:
    occurred_at: datetime
    actor: str
    action: str
    target: Optional[str]
    detail: Optional[str]


class AuditLog:
    """Append-only record of who did what (logins, secret submissions)."""

    def __init__(self, db: Database, *, enabled: bool = True):
        self._db = db
        self.enabled = enabled

    def record(self, actor: str, action: str, target: Optional[str] = None, detail: Optional[str] = None) -> None:
        if not self.enabled:
            return
        logger.info("actor=%s action=%r target=%s", actor, action, target)

        def _insert(session: Session) -> None:
            session.add(AuditEventRow(occurred_at=utcnow(), actor=actor, action=action, target=target, detail=detail))
            session.commit()

        # Losing an audit row must not fail the user's request.
        try:
            self._db.run("audit.record", _insert)
        except BackingStoreUnavailable as e:
            logger.warning("Audit event not stored: %s", e.internal_message)

    def recent(self, limit: int = 50) -> List[AuditEvent]:
        def _list(session: Session) -> List[AuditEvent]:
            rows = session.execute(
                select(AuditEventRow).order_by(AuditEventRow.id.desc()).limit(limit)
            ).scalars()
            return [
                AuditEvent(occurred_at=r.occurred_at, actor=r.actor, action=r.action, target=r.target, detail=r.detail)
                for r in rows
            ]

        return self._db.run("audit.recent", _list)
