"""Serve the pharmacy POS API with uvicorn, bound to HOST/PORT from the environment."""
import logging

import uvicorn

from pharmacy_pos.core.config import settings
from pharmacy_pos.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    logger.info(f"Starting Pharmacy POS backend on {settings.HOST}:{settings.PORT} ({settings.ENVIRONMENT})")
    # uvicorn installs its own SIGINT/SIGTERM handlers for graceful shutdown
    uvicorn.run(
        "pharmacy_pos.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
