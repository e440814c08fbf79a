"""
Process entry point: configure logging and serve the app with uvicorn.

Usage:
    todo-api
    python -m todo_api

Host and port come from ``HOST`` and ``PORT`` (defaults 0.0.0.0:3000).
"""
from __future__ import annotations

import uvicorn

from .logging_config import setup_logging
from .main import create_app
from .settings import get_settings


# PUBLIC_INTERFACE
def main() -> None:
    """Build the app from environment settings and run it until interrupted."""
    settings = get_settings()
    setup_logging(settings.log_level)
    config = uvicorn.Config(
        app=create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    main()
