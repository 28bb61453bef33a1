# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from pathlib import Path
from secrets import compare_digest
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from secretboard.auth.google import build_authorize_url, complete_sign_in, pkce_challenge
from secretboard.auth.local import authenticate_local, register_local
from secretboard.auth.session import clear_session_cookie_kwargs, random_token, session_cookie_kwargs
from secretboard.config import Settings, load_settings
from secretboard.context import AppContext, build_context
from secretboard.errors import BackingStoreUnavailable, DuplicateUsernameError, InvalidCredentialsError, OAuthError
from secretboard.logging_config import configure_logging
from secretboard.models import ANONYMOUS, AuthContext, User
from secretboard.permissions import current_auth, get_context, rate_limited, require_user

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

OAUTH_STATE_COOKIE = "secretboard_oauth_state"
OAUTH_VERIFIER_COOKIE = "secretboard_oauth_verifier"
_OAUTH_TTL_SECONDS = 10 * 60


def _render(
    request: Request,
    template_name: str,
    ctx: Optional[dict] = None,
    *,
    auth: AuthContext = ANONYMOUS,
    status_code: int = 200,
):
    """TemplateResponse wrapper injecting the current user and auth options."""
    settings: Settings = request.app.state.ctx.settings
    base_ctx = {
        "current_user": auth.user,
        "google_enabled": settings.google_enabled,
    }
    return templates.TemplateResponse(request, template_name, {**base_ctx, **(ctx or {})}, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _start_session(request: Request, ctx: AppContext, user: User, url: str = "/secrets") -> RedirectResponse:
    # One live session per browser: drop the one being replaced.
    ctx.sessions.destroy(request.cookies.get(ctx.sessions.cookie_name))
    resp = _redirect(url)
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(**session_cookie_kwargs(ctx.settings, ctx.sessions.create(user.id)))
    return resp


def _oauth_cookie_kwargs(settings: Settings, *, key: str, value: str, max_age: int) -> dict:
    return {
        "key": key,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/auth/google",
    }


def _clear_oauth_cookies(settings: Settings, resp: RedirectResponse) -> RedirectResponse:
    for key in (OAUTH_STATE_COOKIE, OAUTH_VERIFIER_COOKIE):
        resp.set_cookie(**_oauth_cookie_kwargs(settings, key=key, value="", max_age=0))
    return resp


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_file)
    app = FastAPI(title="Secretboard")
    app.state.ctx = build_context(settings)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    @app.exception_handler(BackingStoreUnavailable)
    async def _store_unavailable(request: Request, exc: BackingStoreUnavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.internal_message)
        return _render(request, "error.html", {"message": exc.message}, status_code=503)

    # ------------------ Public pages ------------------

    @app.get("/healthcheck")
    def healthcheck() -> dict:
        return {"ok": True}

    @app.get("/", response_class=HTMLResponse, dependencies=[Depends(rate_limited("pages"))])
    def home(request: Request, auth: AuthContext = Depends(current_auth)):
        return _render(request, "home.html", auth=auth)

    @app.get("/terms", response_class=HTMLResponse)
    def terms(request: Request, auth: AuthContext = Depends(current_auth)):
        return _render(request, "terms.html", auth=auth)

    @app.get("/secrets", response_class=HTMLResponse)
    def secrets(request: Request, ctx: AppContext = Depends(get_context), auth: AuthContext = Depends(current_auth)):
        return _render(request, "secrets.html", {"entries": ctx.store.list_users_with_secret()}, auth=auth)

    # ------------------ Local accounts ------------------

    @app.get("/login", response_class=HTMLResponse, dependencies=[Depends(rate_limited("pages"))])
    def login_get(request: Request, auth: AuthContext = Depends(current_auth)):
        return _render(request, "login.html", auth=auth)

    @app.post("/login", dependencies=[Depends(rate_limited("pages"))])
    def login_post(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
        ctx: AppContext = Depends(get_context),
    ):
        try:
            user = authenticate_local(ctx.store, username, password)
        except InvalidCredentialsError:
            ctx.audit.record(username.strip() or "-", "failed login", "session")
            return _redirect("/login")
        ctx.audit.record(user.audit_name, "logged in", "session")
        return _start_session(request, ctx, user)

    @app.get("/register", response_class=HTMLResponse, dependencies=[Depends(rate_limited("accounts"))])
    def register_get(request: Request, auth: AuthContext = Depends(current_auth)):
        return _render(request, "register.html", auth=auth)

    @app.post("/register", dependencies=[Depends(rate_limited("accounts"))])
    def register_post(
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
        ctx: AppContext = Depends(get_context),
    ):
        try:
            user = register_local(ctx.store, username, password)
        except ValueError:
            logger.info("Registration refused: blank username or password")
            return _redirect("/register")
        except DuplicateUsernameError as e:
            logger.info("Registration refused for %r: %s", e.username, e.message)
            return _redirect("/register")
        return _start_session(request, ctx, user)

    @app.get("/logout")
    def logout(request: Request, ctx: AppContext = Depends(get_context)):
        ctx.sessions.destroy(request.cookies.get(ctx.sessions.cookie_name))
        resp = _redirect("/")
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**clear_session_cookie_kwargs(ctx.settings))
        return resp

    # ------------------ Secrets ------------------

    @app.get("/submit", response_class=HTMLResponse)
    def submit_get(request: Request, user: User = Depends(require_user)):
        return _render(request, "submit.html", auth=AuthContext(user=user))

    @app.post("/submit")
    def submit_post(
        secret: str = Form(""),
        user: User = Depends(require_user),
        ctx: AppContext = Depends(get_context),
    ):
        secret = secret.strip()
        if not secret:
            return _redirect("/submit")
        ctx.store.set_secret(user.id, secret)
        ctx.audit.record(user.audit_name, "submitted a secret", user.id)
        return _redirect("/secrets")

    # ------------------ Google OAuth ------------------

    @app.get("/auth/google")
    def google_login(ctx: AppContext = Depends(get_context)):
        settings = ctx.settings
        if not settings.google_enabled:
            return _redirect("/login")

        state = random_token(32)
        verifier = random_token(32)  # 43 chars base64url: valid PKCE verifier
        url = build_authorize_url(settings, state=state, code_challenge=pkce_challenge(verifier))

        resp = RedirectResponse(url=url, status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**_oauth_cookie_kwargs(settings, key=OAUTH_STATE_COOKIE, value=state, max_age=_OAUTH_TTL_SECONDS))
        resp.set_cookie(
            **_oauth_cookie_kwargs(settings, key=OAUTH_VERIFIER_COOKIE, value=verifier, max_age=_OAUTH_TTL_SECONDS)
        )
        return resp

    @app.get("/auth/google/secrets")
    def google_callback(
        request: Request,
        code: str = "",
        state: str = "",
        error: str = "",
        ctx: AppContext = Depends(get_context),
    ):
        settings = ctx.settings
        cookie_state = (request.cookies.get(OAUTH_STATE_COOKIE) or "").strip()
        cookie_verifier = (request.cookies.get(OAUTH_VERIFIER_COOKIE) or "").strip()

        if not settings.google_enabled or error or not code:
            logger.info("Google sign-in aborted (error=%r)", error)
            return _clear_oauth_cookies(settings, _redirect("/login"))
        state_ok = bool(cookie_state) and compare_digest(cookie_state.encode(), state.strip().encode())
        if not state_ok or not cookie_verifier:
            logger.warning("Google sign-in rejected: OAuth state mismatch")
            return _clear_oauth_cookies(settings, _redirect("/login"))

        try:
            user = complete_sign_in(settings, ctx.store, code=code, code_verifier=cookie_verifier)
        except OAuthError as e:
            logger.warning("Google sign-in failed: %s", e.internal_message)
            return _clear_oauth_cookies(settings, _redirect("/login"))

        ctx.audit.record(user.audit_name, "logged in", "session", "google")
        return _clear_oauth_cookies(settings, _start_session(request, ctx, user))

    return app
