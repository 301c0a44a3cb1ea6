"""Main entry point for the Nostr patch-in daemon."""

import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from patchin.api import create_fastapi_app
from patchin.app import Daemon
from patchin.config import load_settings
from patchin.errors import ConfigError
from patchin.logging_config import get_logger, setup_logging

logger = get_logger("patchin.main")


def main():
    """Run the daemon behind its observability API."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    try:
        settings = load_settings()
    except ConfigError as e:
        logger.critical("Invalid configuration: %s", e)
        sys.exit(1)

    app = create_fastapi_app(Daemon(settings))

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
