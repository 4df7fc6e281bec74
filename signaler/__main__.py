"""Run the relay with uvicorn: ``python -m signaler``."""
from __future__ import annotations

import logging

import uvicorn

from .core.config import settings
from .core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    setup_logging()
    logger.info("Starting Blitz Chat signaler on %s:%s", settings.host, settings.port)
    uvicorn.run(
        "signaler.main:app",
        host=settings.host,
        port=settings.port,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        log_config=None,
    )


if __name__ == "__main__":
    main()
