import pytest

from secretboard.config import DEFAULT_DATABASE_URL, load_settings

_VARS = (
    "SECRETBOARD_DATABASE_URL",
    "SECRETBOARD_SESSION_SECRET",
    "SECRETBOARD_SESSION_TTL_SECONDS",
    "SECRETBOARD_COOKIE_SECURE",
    "SECRETBOARD_PUBLIC_BASE_URL",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "SECRETBOARD_RATE_LIMIT_ENABLED",
    "SECRETBOARD_AUDIT_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


def test_defaults():
    s = load_settings()
    assert s.database_url == DEFAULT_DATABASE_URL
    assert s.session_secret is None
    assert s.session_ttl_seconds == 28800
    assert s.cookie_secure is True  # default public URL is https
    assert s.google_enabled is False
    assert s.rate_limit_enabled is True
    assert s.audit_enabled is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECRETBOARD_PUBLIC_BASE_URL", "http://localhost:8000/")
    monkeypatch.setenv("SECRETBOARD_SESSION_SECRET", "s3cret")
    monkeypatch.setenv("SECRETBOARD_SESSION_TTL_SECONDS", "5")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "cid")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "csecret")
    monkeypatch.setenv("SECRETBOARD_RATE_LIMIT_ENABLED", "off")
    s = load_settings()
    assert s.public_base_url == "http://localhost:8000"
    assert s.cookie_secure is False
    assert s.session_secret == "s3cret"
    assert s.session_ttl_seconds == 60  # floor
    assert s.google_enabled is True
    assert s.google_redirect_uri == "http://localhost:8000/auth/google/secrets"
    assert s.rate_limit_enabled is False


def test_cookie_secure_can_be_forced(monkeypatch):
    monkeypatch.setenv("SECRETBOARD_PUBLIC_BASE_URL", "http://localhost")
    monkeypatch.setenv("SECRETBOARD_COOKIE_SECURE", "true")
    assert load_settings().cookie_secure is True
