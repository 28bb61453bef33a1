# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging

from secretboard.errors import InvalidCredentialsError
from secretboard.infra.user_repo import CredentialStore
from secretboard.models import User

logger = logging.getLogger(__name__)


def authenticate_local(store: CredentialStore, username: str, password: str) -> User:
    """
    Authenticate a local user with username/password.

    Raises InvalidCredentialsError without saying whether the username or the
    password was wrong.
    """
    username = (username or "").strip()
    if not username or not password:
        raise InvalidCredentialsError()
    try:
        return store.verify_local(username, password)
    except InvalidCredentialsError:
        logger.info("Failed login for %r", username)
        raise


def register_local(store: CredentialStore, username: str, password: str) -> User:
    """Create a local account. Raises ValueError on a blank username or password."""
    username = (username or "").strip()
    if not username or not password:
        raise ValueError("Username and password are required")
    return store.create_local(username, password)
