# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

GOOGLE_DISPLAY_NAME = "Google user"


@dataclass(frozen=True)
class User:
    id: str
    username: Optional[str]
    password_hash: Optional[str]
    google_id: Optional[str]
    secret: Optional[str]
    created_at: datetime

    @property
    def display_name(self) -> str:
        return self.username or GOOGLE_DISPLAY_NAME

    @property
    def audit_name(self) -> str:
        if self.username:
            return self.username
        return f"google:{self.google_id}"


@dataclass(frozen=True)
class SecretEntry:
    display_identity: str
    secret: str


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved from the session cookie for the current request."""

    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


ANONYMOUS = AuthContext()
