"""
SQLAlchemy session/engine bootstrap.
- Reads DATABASE_URL from settings (overridable for tests).
- Exposes: Base, init_db(), get_engine(), session_scope(), get_session(), ensure_tables().
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.config import get_settings

logger = logging.getLogger(__name__)

# --- SQLAlchemy base ---------------------------------------------------------

class Base(DeclarativeBase):
    pass

# --- engine & session --------------------------------------------------------

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker[Session]] = None


def init_db(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    (Re)create the engine and session factory.
    Called lazily on first use; tests call it with an in-memory SQLite URL.
    """
    global _engine, _SessionLocal

    settings = get_settings()
    url = database_url or settings.database_url
    engine_kwargs = {}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(
        url,
        echo=settings.db_echo if echo is None else echo,
        pool_pre_ping=True,
        future=True,
        **engine_kwargs,
    )
    _SessionLocal = sessionmaker(
        bind=_engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    logger.info(f"Database engine initialized ({_engine.url.get_backend_name()})")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        init_db()
    return _engine


def _session_factory() -> sessionmaker[Session]:
    if _SessionLocal is None:
        init_db()
    return _SessionLocal

# --- helpers ----------------------------------------------------------------

@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Context manager for a DB session that commits on success.
    Example:
        with session_scope() as s:
            s.add(obj)
    """
    session = _session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Iterator[Session]:
    """
    FastAPI dependency style generator.
    Usage:
        @router.get(...)
        def handler(db: Session = Depends(get_session)):
            ...
    """
    db = _session_factory()()
    try:
        yield db
    finally:
        db.close()


def ensure_tables() -> None:
    """
    Create tables if needed. Import models lazily to avoid circulars.
    Call this once at startup.
    """
    # local import to prevent circular import during module import
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=get_engine())


__all__ = [
    "Base",
    "init_db",
    "get_engine",
    "session_scope",
    "get_session",
    "ensure_tables",
]
