"""Run the fare engine HTTP API."""

import logging

import uvicorn

from fare_engine.api.app import create_app
from fare_engine.engine_logging import setup_logging
from fare_engine.settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging(
        level=settings.engine.log_level,
        json_output=settings.engine.log_format == "json",
        environment=settings.engine.environment,
    )

    app = create_app(settings)

    logger.info(
        "Starting fare engine on %s:%d (rates in %s)",
        settings.api.host,
        settings.api.port,
        settings.engine.timezone,
    )
    uvicorn.run(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.engine.log_level.lower(),
    )


if __name__ == "__main__":
    main()
