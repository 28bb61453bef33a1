"""Secretboard entrypoint.

Run with:
  python -m secretboard

Set SECRETBOARD_SSL_KEYFILE and SECRETBOARD_SSL_CERTFILE to serve HTTPS.
Logging is configured by the app factory, so it also applies to reload workers.
"""

import os
import uvicorn


def main() -> None:
    host = os.getenv("SECRETBOARD_HOST", "0.0.0.0")
    port = int(os.getenv("SECRETBOARD_PORT", "8000"))
    reload = os.getenv("SECRETBOARD_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    ssl_keyfile = os.getenv("SECRETBOARD_SSL_KEYFILE") or None
    ssl_certfile = os.getenv("SECRETBOARD_SSL_CERTFILE") or None

    uvicorn.run(
        "secretboard.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        ssl_keyfile=ssl_keyfile,
        ssl_certfile=ssl_certfile,
        log_config=None,
    )

if __name__ == "__main__":
    main()
