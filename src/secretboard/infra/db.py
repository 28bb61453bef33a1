# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from secretboard.errors import BackingStoreUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

Base = declarative_base()


def utcnow() -> datetime:
    # Naive UTC: SQLite drops tzinfo on the way back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRow(Base):
    __tablename__ = "users"

    # `seq` keeps insertion order; `id` is the opaque public identifier.
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), unique=True, nullable=False, index=True)
    username = Column(String(255), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=True)
    google_id = Column(String(255), unique=True, nullable=True)
    secret = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<UserRow id={self.id!r} username={self.username!r} google_id={self.google_id!r}>"


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)


class AuditEventRow(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    occurred_at = Column(DateTime, nullable=False, default=utcnow)
    actor = Column(String(255), nullable=False)
    action = Column(String(255), nullable=False)
    target = Column(String(255), nullable=True)
    detail = Column(Text, nullable=True)


def make_engine(url: str) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False, "timeout": 30}
    database = parsed.database or ""
    if not database or database == ":memory:":
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args)


class Database:
    """Engine + session factory with a bounded retry for transient failures."""

    def __init__(self, url: str, *, attempts: int = 3, backoff_seconds: float = 0.05):
        self.url = url
        self.engine = make_engine(url)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._attempts = max(1, attempts)
        self._backoff = backoff_seconds

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise BackingStoreUnavailable("create_schema", str(e)) from e

    def run(self, operation: str, fn: Callable[[Session], T]) -> T:
        """
        Run `fn` inside a fresh ORM session.

        OperationalError (lost connection, locked database) is retried up to
        `attempts` times; any other SQLAlchemy error, or the last failed
        attempt, becomes BackingStoreUnavailable. Domain errors raised by `fn`
        propagate untouched.
        """
        last_error: Exception | None = None
        for attempt in range(1, self._attempts + 1):
            try:
                with self._sessions() as session:
                    return fn(session)
            except OperationalError as e:
                last_error = e
                logger.warning("Store %s failed (attempt %d/%d): %s", operation, attempt, self._attempts, e)
                if attempt < self._attempts:
                    time.sleep(self._backoff * attempt)
            except SQLAlchemyError as e:
                logger.error("Store %s failed: %s", operation, e)
                raise BackingStoreUnavailable(operation, str(e)) from e
        raise BackingStoreUnavailable(operation, str(last_error)) from last_error

    def dispose(self) -> None:
        self.engine.dispose()
