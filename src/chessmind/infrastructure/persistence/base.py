from __future__ import annotations

from pathlib import Path
from typing import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from src.chessmind.infrastructure.config import AppConfig, load_config

Base = declarative_base()


def create_engine_from_config(config: AppConfig | None = None) -> Engine:
    """Create a SQLAlchemy engine using the provided configuration."""
    cfg = config or load_config()
    engine_kwargs: dict = {"pool_pre_ping": True, "future": True}

    if cfg.database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        database = make_url(cfg.database_url).database
        if database and database != ":memory:":
            # File databases get a connection per session from the default pool.
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        else:
            # An in-memory database only exists on its one connection.
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(cfg.database_url, **engine_kwargs)


def create_session_factory(
    config: AppConfig | None = None,
    *,
    engine: Engine | None = None,
) -> sessionmaker:
    """Produce a session factory tied to the application engine."""
    bind = engine or create_engine_from_config(config=config)
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


@contextmanager
def session_scope(
    config: AppConfig | None = None,
    *,
    factory: sessionmaker | None = None,
) -> Iterator[Session]:
    """Provide a transactional session scope."""
    session_factory = factory or create_session_factory(config=config)
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "create_engine_from_config",
    "create_session_factory",
    "session_scope",
]
