# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional


class SecretboardError(Exception):
    """Base class for errors recovered at the route boundary."""

    def __init__(self, message: str, *, internal_message: Optional[str] = None):
        self.message = message  # safe to show
        self.internal_message = internal_message or message  # logs only
        super().__init__(self.message)


class DuplicateUsernameError(SecretboardError):
    def __init__(self, username: str):
        self.username = username
        super().__init__("Username already registered")


class InvalidCredentialsError(SecretboardError):
    # Same message for unknown user and wrong password.
    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class BackingStoreUnavailable(SecretboardError):
    def __init__(self, operation: str, internal_message: Optional[str] = None):
        self.operation = operation
        super().__init__(
            "An internal error occurred. Please try again later.",
            internal_message=internal_message or f"Store operation failed: {operation}",
        )


class OAuthError(SecretboardError):
    def __init__(self, internal_message: str):
        super().__init__("Sign-in with the external provider failed", internal_message=internal_message)
