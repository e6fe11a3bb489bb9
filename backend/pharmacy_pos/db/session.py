"""Database engine and session factory. SQLite compatible with connection pooling.

`make_engine` / `make_session_factory` let tests and scripts build their own
store; the module-level `engine` and `SessionLocal` serve the application.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from pharmacy_pos.core.config import settings


def make_engine(url: str | None = None, **kwargs) -> Engine:
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        # SQLite: one connection per checkout, shareable across threads
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        kwargs.setdefault("poolclass", NullPool)
    else:
        # PostgreSQL/MySQL: QueuePool with sensible defaults
        kwargs.setdefault("pool_size", 5)
        kwargs.setdefault("max_overflow", 10)
        kwargs.setdefault("pool_timeout", 30)
        kwargs.setdefault("pool_recycle", 3600)
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, echo=settings.SQL_ECHO, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine()
SessionLocal = make_session_factory(engine)
