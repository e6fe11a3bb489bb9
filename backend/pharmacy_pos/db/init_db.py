"""Create all tables. Run on app startup."""
import logging

from sqlalchemy.engine import Engine

from pharmacy_pos.db.base import Base
from pharmacy_pos.db.session import engine as default_engine
from pharmacy_pos.models import alert, medicine, sale  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db(bind: Engine | None = None) -> None:
    bind = bind or default_engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database tables ensured on {bind.url.render_as_string(hide_password=True)}")
