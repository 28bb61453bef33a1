#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from secretboard.config import load_settings
from secretboard.errors import DuplicateUsernameError
from secretboard.infra.db import Database
from secretboard.infra.user_repo import CredentialStore


def main() -> None:
    settings = load_settings()
    db = Database(settings.database_url)
    db.create_schema()
    store = CredentialStore(db)

    username = input("Username: ").strip()
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        user = store.create_local(username, pw1)
    except DuplicateUsernameError:
        raise SystemExit(f"User {username!r} already exists")
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"OK -> {user.username} ({user.id}) in {settings.database_url}")


if __name__ == "__main__":
    main()
