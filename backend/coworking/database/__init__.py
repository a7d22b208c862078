"""
Engine, session factory and declarative base.

The URL comes from ``settings.database_url``. SQLite is used for local
runs and the test suite, PostgreSQL in deployment; the two need different
engine options, chosen in ``_engine_options``.
"""

import logging
from typing import Any, Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # Sessions cross threads because routes hand work to asyncio.to_thread
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_size=5, max_overflow=10, pool_recycle=300, pool_pre_ping=True)
    return options


engine: Engine = create_engine(settings.database_url, **_engine_options(settings.database_url))


if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("SQLite connection opened with foreign keys enforced")


SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()

__all__ = ["Base", "SessionLocal", "engine"]
