"""
Process entry point.

Runs the HUD bridge with uvicorn:

    live-hud            (console script)
    python -m server.main
"""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "server.asgi:app",
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        log_level=os.environ.get("LOG_LEVEL", "info").lower(),
        reload=os.environ.get("ENV", "dev") == "dev",  # Dev mode only
    )


if __name__ == "__main__":
    main()
