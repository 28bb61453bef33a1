# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Secretboard: each account shares one secret on a public wall."""

__version__ = "0.1.0"
