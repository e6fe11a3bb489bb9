"""
Background low-stock alert sweep.

Stock changes already refresh alerts as they happen; the sweep is the
safety net for changes made outside the ledger (imports, manual SQL) and
for threshold edits. Runs in the FastAPI event loop, off unless
ALERT_SWEEP_ENABLED is set.
"""
import asyncio
import logging

from sqlalchemy.orm import sessionmaker

from pharmacy_pos.core.config import settings
from pharmacy_pos.core.exceptions import PersistenceFailure
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.db.session import SessionLocal
from pharmacy_pos.services.alert_service import AlertService

logger = logging.getLogger(__name__)


def run_sweep(session_factory: sessionmaker = SessionLocal) -> int:
    """One pass over the catalog in a fresh session. Returns open alert count."""
    db = session_factory()
    try:
        return AlertService(PharmacyRepository(db)).sweep()
    finally:
        db.close()


_sweeper_running = False
_sweeper_task: asyncio.Task | None = None


async def _sweep_loop(interval: int):
    global _sweeper_running
    _sweeper_running = True

    logger.info(f"[AlertSweep] Started. Interval: {interval}s")

    while _sweeper_running:
        try:
            loop = asyncio.get_running_loop()
            open_count = await loop.run_in_executor(None, run_sweep)
            logger.debug(f"[AlertSweep] {open_count} open alerts")
        except PersistenceFailure as e:
            # Next pass retries; the request path keeps alerts current meanwhile.
            logger.error(f"[AlertSweep] Sweep failed: {e}")

        await asyncio.sleep(interval)


def start_alert_sweeper(interval: int | None = None) -> None:
    """Start the sweep loop. Called from the FastAPI lifespan."""
    global _sweeper_task
    _sweeper_task = asyncio.create_task(_sweep_loop(interval or settings.ALERT_SWEEP_INTERVAL_SECONDS))


def stop_alert_sweeper() -> None:
    global _sweeper_running, _sweeper_task
    _sweeper_running = False
    if _sweeper_task is not None:
        _sweeper_task.cancel()
        _sweeper_task = None
    logger.info("[AlertSweep] Stopped")
