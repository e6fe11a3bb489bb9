"""
Pytest fixtures: a fresh in-memory SQLite store per test, the repository
and services on top of it, and a medicine factory.
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from pharmacy_pos.db.init_db import init_db
from pharmacy_pos.db.repository import PharmacyRepository
from pharmacy_pos.db.session import make_engine, make_session_factory
from pharmacy_pos.services import inventory_service
from pharmacy_pos.services.alert_service import AlertService
from pharmacy_pos.services.sale_orchestrator import SaleOrchestrator
from pharmacy_pos.services.stock_ledger import StockLedger


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_store(tmp_path):
    """Session factory over an on-disk SQLite file, for tests that need separate connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return PharmacyRepository(db)


@pytest.fixture
def alerts(repo):
    return AlertService(repo)


@pytest.fixture
def ledger(repo, alerts):
    return StockLedger(repo, alerts)


@pytest.fixture
def orchestrator(repo, ledger):
    return SaleOrchestrator(repo, ledger)


@pytest.fixture
def make_medicine(repo):
    """Create a medicine through the catalog factory. Defaults: stock 10, no threshold."""

    def _make(name="Paracetamol 500mg", price="10.00", stock=10, threshold=0, **kwargs):
        return inventory_service.create_medicine(
            repo, name=name, price=Decimal(price), stock=stock, threshold=threshold, **kwargs
        )

    return _make
