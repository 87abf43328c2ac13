from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _get_database_url() -> str:
    """
    Return the database URL.

    Falls back to a SQLite file under ``data/`` so local use and scripts
    need no configuration.
    """
    return os.getenv(
        "DATABASE_URL",
        f"sqlite:///{PROJECT_ROOT / 'data' / 'bookmarks.db'}",
    )


DATABASE_URL = _get_database_url()


def create_db_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """Sync engine; SQLite connections are shared across worker threads."""
    url = url or DATABASE_URL
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # one connection, otherwise every session sees a fresh empty database
        kwargs["poolclass"] = StaticPool
    else:
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables."""
    Base.metadata.create_all(engine)


engine = create_db_engine()

SessionLocal = create_session_factory(engine)
