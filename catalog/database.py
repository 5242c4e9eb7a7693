"""Engine and session factory construction for the catalog database."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker

from models import Base

LOGGER = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT = 30.0

_ENGINE_OPTIONS = {
    "pool_pre_ping": True,
    "pool_recycle": 1800,
}


def build_engine(db_url: str) -> Engine:
    """Create an engine whose pool can be shared by concurrent backfill workers."""

    url = make_url(db_url)
    if url.get_backend_name() == "sqlite":
        # One connection per thread; writers wait on the SQLite lock instead of failing.
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT},
            pool_pre_ping=True,
        )
    return create_engine(db_url, **_ENGINE_OPTIONS)


def build_session_factory(db_url: str, *, create_tables: bool = True) -> sessionmaker:
    engine = build_engine(db_url)
    if create_tables:
        Base.metadata.create_all(engine)  # ensure required tables exist before queries
    LOGGER.debug("Session factory ready for %s", engine.url.render_as_string(hide_password=True))
    return sessionmaker(bind=engine, expire_on_commit=False)
