# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request

from secretboard.context import AppContext
from secretboard.models import AuthContext, User


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def current_auth(request: Request, ctx: AppContext = Depends(get_context)) -> AuthContext:
    return ctx.sessions.resolve(request.cookies.get(ctx.sessions.cookie_name))


def require_user(auth: AuthContext = Depends(current_auth)) -> User:
    if auth.user is not None:
        return auth.user
    raise HTTPException(status_code=303, headers={"Location": "/login"})


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limited(name: str) -> Callable[[Request], None]:
    def _dep(request: Request) -> None:
        limiter = get_context(request).limiters.get(name)
        if limiter is None:
            return
        allowed, _ = limiter.check_and_increment(client_address(request))
        if not allowed:
            raise HTTPException(status_code=429, detail=limiter.message)

    return _dep
