import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from secretboard.app import create_app
from secretboard.config import Settings
from secretboard.infra.db import Database
from secretboard.infra.user_repo import CredentialStore
from secretboard.auth.session import SessionManager


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Insecure cookies (TestClient talks plain http), no rate limiting."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'secretboard.db'}",
        session_secret="test-secret-key-for-testing-purposes-only",
        session_ttl_seconds=3600,
        cookie_secure=False,
        public_base_url="http://testserver",
        rate_limit_enabled=False,
        audit_enabled=True,
    )


@pytest.fixture()
def db(settings: Settings) -> Database:
    database = Database(settings.database_url)
    database.create_schema()
    yield database
    database.dispose()


@pytest.fixture()
def store(db: Database) -> CredentialStore:
    return CredentialStore(db)


@pytest.fixture()
def sessions(settings: Settings, db: Database, store: CredentialStore) -> SessionManager:
    return SessionManager(settings, db, store)


@pytest.fixture()
def app(settings: Settings):
    application = create_app(settings)
    yield application
    application.state.ctx.db.dispose()


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)
