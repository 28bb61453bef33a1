# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Password hashing/verification (argon2)
- Local username/password and Google OAuth sign-in strategies
- Server-side sessions behind signed cookies (itsdangerous)
- A per-client rate limiter for the public forms
"""
