"""
Pharmacy POS backend.

ARCHITECTURE:
- StockLedger: the only writer of medicine stock (conditional UPDATE + per-medicine lock)
- SaleOrchestrator: complete-sale protocol with compensating stock restores
- AlertService: low-stock alerts kept in step with every stock change
- FastAPI: thin HTTP surface over the services; no business rules in routes
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmacy_pos import __version__
from pharmacy_pos.api.routes import alerts, inventory, sales
from pharmacy_pos.core.config import settings
from pharmacy_pos.core.exceptions import PharmacyError, http_status_for, public_detail
from pharmacy_pos.core.logging_config import configure_logging
from pharmacy_pos.db.init_db import init_db
from pharmacy_pos.services.alert_sweeper import start_alert_sweeper, stop_alert_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Configure logging
    2. Initialize database tables
    3. Start the background alert sweep (if enabled)
    """
    configure_logging()
    init_db()
    if settings.ALERT_SWEEP_ENABLED:
        start_alert_sweeper()
    else:
        logger.info("Alert sweep disabled (ALERT_SWEEP_ENABLED not set)")

    yield

    if settings.ALERT_SWEEP_ENABLED:
        stop_alert_sweeper()


app = FastAPI(
    title="Pharmacy POS API",
    description="Inventory, sales and low-stock alerts for a single pharmacy.",
    version=__version__,
    lifespan=lifespan,
)

# Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "X-User-Id",
    ],
    max_age=600,
)


@app.exception_handler(PharmacyError)
async def pharmacy_error_handler(request: Request, exc: PharmacyError) -> JSONResponse:
    code = http_status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}", exc_info=exc)
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=code, content={"detail": public_detail(exc), "error": type(exc).__name__})


app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
app.include_router(sales.router, prefix="/sales", tags=["sales"])
app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])


@app.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "alert_sweep": "enabled" if settings.ALERT_SWEEP_ENABLED else "disabled",
    }
