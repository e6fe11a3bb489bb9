"""Root logging setup. Called once at application start."""
import logging

from pharmacy_pos.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or settings.LOG_LEVEL, format=LOG_FORMAT)
    # Audit lines are JSON already; keep them even when the root is quieter.
    logging.getLogger("audit").setLevel(logging.INFO)
    if not settings.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
