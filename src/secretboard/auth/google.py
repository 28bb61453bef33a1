# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from secretboard.config import Settings
from secretboard.errors import OAuthError
from secretboard.infra.user_repo import CredentialStore
from secretboard.models import User

logger = logging.getLogger(__name__)

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
USERINFO_ENDPOINT = "https://www.googleapis.com/oauth2/v3/userinfo"
SCOPE = "profile"

HTTP_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class GoogleProfile:
    id: str  # provider-scoped `sub`
    name: Optional[str] = None


def pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def build_authorize_url(settings: Settings, *, state: str, code_challenge: str) -> str:
    if not settings.google_client_id:
        raise OAuthError("Google client id not configured")
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": settings.google_redirect_uri,
        "response_type": "code",
        "scope": SCOPE,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}"


def exchange_code(settings: Settings, *, code: str, code_verifier: str) -> Dict[str, Any]:
    """Exchange the authorization code for tokens (access_token, ...)."""
    if not settings.google_enabled:
        raise OAuthError("Google client id/secret not configured")
    payload = {
        "client_id": settings.google_client_id,
        "client_secret": settings.google_client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": settings.google_redirect_uri,
        "code_verifier": code_verifier,
    }
    try:
        r = requests.post(TOKEN_ENDPOINT, data=payload, timeout=HTTP_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise OAuthError(f"Token request failed: {e}") from e
    if r.status_code >= 400:
        # Keep provider error bodies out of logs.
        raise OAuthError(f"Token exchange failed (status={r.status_code})")
    try:
        data = r.json()
    except ValueError as e:
        raise OAuthError("Invalid token response") from e
    if not isinstance(data, dict) or not data.get("access_token"):
        raise OAuthError("Token response missing access_token")
    return data


def fetch_profile(access_token: str) -> GoogleProfile:
    try:
        r = requests.get(
            USERINFO_ENDPOINT,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise OAuthError(f"Userinfo request failed: {e}") from e
    if r.status_code >= 400:
        raise OAuthError(f"Userinfo request failed (status={r.status_code})")
    try:
        data = r.json()
    except ValueError as e:
        raise OAuthError("Invalid userinfo response") from e
    sub = str((data or {}).get("sub") or "").strip() if isinstance(data, dict) else ""
    if not sub:
        raise OAuthError("Userinfo response missing sub")
    name = str(data.get("name") or "").strip() or None
    return GoogleProfile(id=sub, name=name)


def authenticate_google(store: CredentialStore, profile: GoogleProfile) -> User:
    """Map a Google profile onto a local user, creating it on first sign-in."""
    user = store.find_or_create_by_google_id(profile.id)
    logger.info("Google sign-in for user %s", user.id)
    return user


def complete_sign_in(settings: Settings, store: CredentialStore, *, code: str, code_verifier: str) -> User:
    tokens = exchange_code(settings, code=code, code_verifier=code_verifier)
    profile = fetch_profile(str(tokens["access_token"]))
    return authenticate_google(store, profile)
