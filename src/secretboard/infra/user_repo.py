# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from secretboard.auth.passwords import dummy_hash, hash_password, verify_password
from secretboard.errors import DuplicateUsernameError, InvalidCredentialsError
from secretboard.infra.db import Database, UserRow, utcnow
from secretboard.models import SecretEntry, User

logger = logging.getLogger(__name__)


def new_user_id() -> str:
    return uuid.uuid4().hex


def _to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        google_id=row.google_id,
        secret=row.secret,
        created_at=row.created_at,
    )


class CredentialStore:
    """
    User records: local accounts, Google accounts and their single secret.

    Uniqueness of `username` and `google_id` is enforced by the database, so
    several app processes can share one store.
    """

    def __init__(self, db: Database):
        self._db = db

    def create_local(self, username: str, password: str) -> User:
        username = (username or "").strip()
        if not username:
            raise ValueError("Empty username")
        password_hash = hash_password(password)

        def _insert(session: Session) -> User:
            row = UserRow(id=new_user_id(), username=username, password_hash=password_hash, created_at=utcnow())
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateUsernameError(username) from e
            return _to_user(row)

        user = self._db.run("create_local", _insert)
        logger.info("Registered local user %s", user.username)
        return user

    def find_or_create_by_google_id(self, google_id: str) -> User:
        google_id = (google_id or "").strip()
        if not google_id:
            raise ValueError("Empty Google id")

        def _find(session: Session) -> Optional[UserRow]:
            return session.execute(select(UserRow).where(UserRow.google_id == google_id)).scalar_one_or_none()

        def _find_or_create(session: Session) -> User:
            row = _find(session)
            if row is not None:
                return _to_user(row)
            row = UserRow(id=new_user_id(), google_id=google_id, created_at=utcnow())
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Lost the race against a concurrent insert: return the winner.
                session.rollback()
                row = _find(session)
                if row is None:
                    raise
                return _to_user(row)
            logger.info("Created Google user %s", row.id)
            return _to_user(row)

        return self._db.run("find_or_create_by_google_id", _find_or_create)

    def verify_local(self, username: str, password: str) -> User:
        username = (username or "").strip()

        def _lookup(session: Session) -> Optional[User]:
            if not username:
                return None
            row = session.execute(select(UserRow).where(UserRow.username == username)).scalar_one_or_none()
            return _to_user(row) if row is not None else None

        user = self._db.run("verify_local", _lookup)
        if user is None or not user.password_hash:
            verify_password(dummy_hash(), password or "-")
            raise InvalidCredentialsError()
        if not verify_password(user.password_hash, password):
            raise InvalidCredentialsError()
        return user

    def get(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None

        def _get(session: Session) -> Optional[User]:
            row = session.execute(select(UserRow).where(UserRow.id == user_id)).scalar_one_or_none()
            return _to_user(row) if row is not None else None

        return self._db.run("get_user", _get)

    def set_secret(self, user_id: str, secret_text: str) -> None:
        def _update(session: Session) -> int:
            result = session.execute(update(UserRow).where(UserRow.id == user_id).values(secret=secret_text))
            session.commit()
            return result.rowcount

        if not self._db.run("set_secret", _update):
            logger.warning("set_secret: no user with id %s", user_id)

    def list_users_with_secret(self) -> List[SecretEntry]:
        def _list(session: Session) -> List[SecretEntry]:
            rows = session.execute(
                select(UserRow).where(UserRow.secret.is_not(None)).order_by(UserRow.seq)
            ).scalars()
            return [SecretEntry(display_identity=_to_user(r).display_name, secret=r.secret) for r in rows]

        return self._db.run("list_users_with_secret", _list)
